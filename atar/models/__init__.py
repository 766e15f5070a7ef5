"""
atar Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .results import ExecutionResult
from .deployment import (
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentState,
    ExitCode,
    OutputVariable,
    TerminationCause,
    TRANSITIONS,
    worst_exit_code,
)

__all__ = [
    # Results
    "ExecutionResult",
    # Deployment
    "DeploymentOutcome",
    "DeploymentRequest",
    "DeploymentState",
    "ExitCode",
    "OutputVariable",
    "TerminationCause",
    "TRANSITIONS",
    "worst_exit_code",
]
