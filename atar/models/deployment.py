"""
Deployment Models

Dataclass models for an ephemeral deployment run.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from atar.exceptions import AtarError, OperationError, SpawnError


class DeploymentState(Enum):
    """Phase of the lifecycle controller."""

    IDLE = "idle"
    APPLYING = "applying"
    READY = "ready"
    FAILED = "failed"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    DESTROY_FAILED = "destroy_failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self in (DeploymentState.DESTROYED, DeploymentState.DESTROY_FAILED)


# Allowed transitions. APPLYING -> DESTROYING covers a signal recorded
# during an apply that succeeded; READY is skipped in that case.
TRANSITIONS = {
    DeploymentState.IDLE: {DeploymentState.APPLYING},
    DeploymentState.APPLYING: {
        DeploymentState.READY,
        DeploymentState.FAILED,
        DeploymentState.DESTROYING,
    },
    DeploymentState.READY: {DeploymentState.DESTROYING},
    DeploymentState.FAILED: {DeploymentState.DESTROYING},
    DeploymentState.DESTROYING: {
        DeploymentState.DESTROYED,
        DeploymentState.DESTROY_FAILED,
    },
    DeploymentState.DESTROYED: set(),
    DeploymentState.DESTROY_FAILED: set(),
}


class TerminationCause(Enum):
    """Why the teardown path was entered."""

    SIGNAL_RECEIVED = "signal_received"
    APPLY_FAILED = "apply_failed"
    NORMAL_COMPLETION_REQUESTED = "normal_completion_requested"


class ExitCode(IntEnum):
    """Process exit codes. 2 is left to click usage errors."""

    SUCCESS = 0
    APPLY_FAILED = 1
    ENGINE_UNAVAILABLE = 3
    DESTROY_FAILED = 4
    INTERRUPTED = 130

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    ExitCode.SUCCESS: 0,
    ExitCode.INTERRUPTED: 1,
    ExitCode.APPLY_FAILED: 2,
    ExitCode.ENGINE_UNAVAILABLE: 3,
    ExitCode.DESTROY_FAILED: 4,
}


def worst_exit_code(*codes: ExitCode) -> ExitCode:
    """Pick the most severe of the given exit codes."""
    return max(codes, key=lambda code: code.severity, default=ExitCode.SUCCESS)


@dataclass(frozen=True)
class DeploymentRequest:
    """Immutable input of a deployment: configuration path plus variables."""

    terraform_file: Path
    variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "terraform_file", Path(self.terraform_file))
        object.__setattr__(
            self, "variables", MappingProxyType(dict(self.variables))
        )

    @property
    def working_dir(self) -> Path:
        """Directory Terraform runs in (parent of the configuration file)."""
        path = self.terraform_file.expanduser().resolve()
        return path if path.is_dir() else path.parent

    def var_args(self) -> list[str]:
        """Render variables as repeated `-var name=value` arguments."""
        args = []
        for name, value in self.variables.items():
            args.extend(["-var", f"{name}={value}"])
        return args


@dataclass(frozen=True)
class OutputVariable:
    """A named output reported by Terraform after apply."""

    name: str
    value: str
    sensitive: bool = False


@dataclass
class DeploymentOutcome:
    """Everything the controller observed during one run."""

    state: DeploymentState = DeploymentState.IDLE
    cause: Optional[TerminationCause] = None
    outputs: list[OutputVariable] = field(default_factory=list)
    apply_error: Optional[OperationError] = None
    destroy_error: Optional[AtarError] = None
    spawn_error: Optional[SpawnError] = None
    destroy_attempted: bool = False
    cancelled: bool = False
    signum: Optional[int] = None

    @property
    def apply_failed(self) -> bool:
        return self.apply_error is not None

    @property
    def exit_code(self) -> ExitCode:
        """Exit code reflecting the worst outcome observed."""
        codes = [ExitCode.SUCCESS]
        if self.cancelled:
            codes.append(ExitCode.INTERRUPTED)
        if self.apply_error is not None:
            codes.append(ExitCode.APPLY_FAILED)
        if self.spawn_error is not None:
            codes.append(ExitCode.ENGINE_UNAVAILABLE)
        if self.destroy_error is not None or self.state == DeploymentState.DESTROY_FAILED:
            codes.append(ExitCode.DESTROY_FAILED)
        return worst_exit_code(*codes)

    def __repr__(self) -> str:
        return (
            f"DeploymentOutcome(state={self.state.value}, "
            f"exit_code={int(self.exit_code)})"
        )
