"""Shared fixtures for the atar test suite."""

import io
import json
import os
import shlex
import signal
import sys
import time
from pathlib import Path

import pytest
from rich.console import Console

from atar.logger import DeployLogger
from atar.models import DeploymentRequest
from atar.terraform_utils import TerraformManager

STUB_TERRAFORM = Path(__file__).parent / "stub_terraform.py"
STUB_COMMAND = [sys.executable, str(STUB_TERRAFORM)]


def deliver_signal(signum, until, timeout=2.0):
    """Send `signum` to this process and wait until `until()` holds."""
    os.kill(os.getpid(), signum)
    deadline = time.monotonic() + timeout
    while not until() and time.monotonic() < deadline:
        time.sleep(0.01)


def read_invocations(log_path):
    """Subcommands the stub was invoked with, in order."""
    if not log_path.exists():
        return []
    with open(log_path) as f:
        return [json.loads(line) for line in f if line.strip()]


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def quiet_logger(quiet_console):
    return DeployLogger("test", "test", output_console=quiet_console)


@pytest.fixture
def tf_dir(tmp_path):
    workdir = tmp_path / "infra"
    workdir.mkdir()
    (workdir / "main.tf").write_text('output "endpoint" { value = "1.2.3.4" }\n')
    return workdir


@pytest.fixture
def request_for(tf_dir):
    def _build(**variables):
        return DeploymentRequest(tf_dir / "main.tf", variables)

    return _build


@pytest.fixture
def stub_env(tmp_path):
    """Environment for the stub; tests add STUB_TF_FAIL etc. as needed."""
    return {
        "STUB_TF_LOG": str(tmp_path / "invocations.log"),
        "STUB_TF_STATE": str(tmp_path / "terraform.tfstate"),
        "STUB_TF_OUTPUTS": json.dumps({"endpoint": "1.2.3.4", "id": "i-123"}),
    }


@pytest.fixture
def stub_manager(stub_env, quiet_logger):
    """Factory for a TerraformManager that runs the stub engine."""

    def _build(**overrides):
        env = {**stub_env, **overrides}
        return TerraformManager(
            STUB_COMMAND,
            logger=quiet_logger,
            env=env,
            stdout=io.StringIO(),
            stderr=io.StringIO(),
        )

    return _build


@pytest.fixture
def stub_cli_env(stub_env):
    """Environment for CLI runs that resolve the binary from ATAR_TERRAFORM_BIN."""
    return {
        **stub_env,
        "ATAR_TERRAFORM_BIN": " ".join(shlex.quote(part) for part in STUB_COMMAND),
        "ATAR_LOG_DIR": None,
        "DEBUG": None,
        "VERBOSE": None,
    }


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    """Make sure no test leaks a handler for the termination signals."""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.fixture
def vanishing_terraform(tmp_path):
    """A terraform wrapper that deletes itself once apply has run."""
    wrapper = tmp_path / "bin" / "terraform"
    wrapper.parent.mkdir()
    wrapper.write_text(
        "#!/bin/sh\n"
        'if [ "$1" = "apply" ]; then rm -f "$0"; fi\n'
        f'exec {" ".join(shlex.quote(part) for part in STUB_COMMAND)} "$@"\n'
    )
    wrapper.chmod(0o755)
    return wrapper
