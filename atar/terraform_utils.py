"""
Terraform Utilities

Terraform subprocess client for ephemeral deployments.
"""

import json
import os
import shlex
import signal
import subprocess
import sys
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO, Union

from atar.constants import (
    APPLY_POLL_INTERVAL,
    DEFAULT_TERRAFORM_BIN,
    ERROR_TERRAFORM_MISSING,
    TERRAFORM_AUTOMATION_ENV,
)
from atar.exceptions import (
    ApplyError,
    DestroyError,
    InitError,
    OutputError,
    SpawnError,
)
from atar.logger import DeployLogger
from atar.models import DeploymentRequest, ExecutionResult, OutputVariable


def render_value(value: Any) -> str:
    """Strings are shown raw; anything else as compact JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def parse_outputs(raw_outputs: Mapping[str, Any]) -> List[OutputVariable]:
    """
    Convert Terraform's output JSON into ordered OutputVariables.

    Accepts both `terraform output -json` and the `outputs` event of
    `terraform apply -json`. Entries without a value are skipped unless
    they are sensitive (the value is withheld in that case).
    """
    outputs = []
    for name, meta in raw_outputs.items():
        if not isinstance(meta, dict):
            continue
        sensitive = bool(meta.get("sensitive", False))
        if "value" in meta:
            outputs.append(OutputVariable(name, render_value(meta["value"]), sensitive))
        elif sensitive:
            outputs.append(OutputVariable(name, "", sensitive=True))
    return outputs


class _ApplyStream:
    """Consumes `terraform apply -json` lines: echoes progress, keeps outputs."""

    def __init__(self, echo: Callable[[str], None]):
        self._echo = echo
        self.outputs: Optional[List[OutputVariable]] = None
        self.diagnostics: List[str] = []

    def __call__(self, line: str) -> None:
        try:
            event = json.loads(line)
        except ValueError:
            self._echo(line)
            return
        if not isinstance(event, dict):
            self._echo(line)
            return

        event_type = event.get("type")
        if event_type == "outputs":
            self.outputs = parse_outputs(event.get("outputs") or {})
        elif event_type == "diagnostic" and event.get("@level") == "error":
            diagnostic = event.get("diagnostic") or {}
            detail = diagnostic.get("detail")
            summary = diagnostic.get("summary") or event.get("@message", "")
            self.diagnostics.append(f"{summary}: {detail}" if detail else summary)

        message = event.get("@message")
        if message:
            self._echo(message)


class TerraformManager:
    """
    Runs Terraform for one deployment request.

    Responsibilities:
    - Check that Terraform can be spawned
    - Init / apply / destroy / output queries
    - Stream child output live while buffering stderr for error reports
    - Forward a cancellation to a running apply

    Every call spawns exactly one child in its own session, so terminal
    signals reach only this process.
    """

    def __init__(
        self,
        binary: Union[str, Sequence[str]] = DEFAULT_TERRAFORM_BIN,
        logger: Optional[DeployLogger] = None,
        env: Optional[Mapping[str, str]] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        """
        Initialize Terraform manager.

        Args:
            binary: Terraform executable, or a full command prefix
            logger: DeployLogger for commands and captured output
            env: Extra environment variables for the child
            stdout: Stream for live progress (sys.stdout at call time if None)
            stderr: Stream for live stderr (sys.stderr at call time if None)
        """
        if isinstance(binary, str):
            self.command_prefix = shlex.split(binary)
        else:
            self.command_prefix = list(binary)
        self.logger = logger or DeployLogger("terraform", "run")
        self._env = {**TERRAFORM_AUTOMATION_ENV, **(env or {})}
        self._stdout = stdout
        self._stderr = stderr

    def _merged_env(self) -> Dict[str, str]:
        merged = os.environ.copy()
        merged.update(self._env)
        return merged

    def _format(self, args: Sequence[str]) -> str:
        return " ".join(shlex.quote(a) for a in [*self.command_prefix, *args])

    def _echo(self, line: str) -> None:
        stream = self._stdout or sys.stdout
        stream.write(line + "\n")
        stream.flush()

    def _pump(
        self,
        pipe: TextIO,
        buffer: List[str],
        stream_name: str,
        on_line: Optional[Callable[[str], None]],
    ) -> None:
        # The pipe is drained to EOF even when a sink fails, or the child blocks
        try:
            for raw in pipe:
                line = raw.rstrip("\n")
                buffer.append(line)
                try:
                    self.logger.log_output(line, stream_name)
                except (OSError, ValueError):
                    pass
                if on_line is None:
                    continue
                try:
                    on_line(line)
                except (OSError, ValueError):
                    pass
        finally:
            pipe.close()

    def _forward_stderr(self, line: str) -> None:
        stream = self._stderr or sys.stderr
        stream.write(line + "\n")
        stream.flush()

    def _run_command(
        self,
        args: Sequence[str],
        request: DeploymentRequest,
        on_stdout: Optional[Callable[[str], None]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """
        Run one Terraform command in the request's working directory.

        Args:
            args: Command arguments (e.g., ['apply', '-auto-approve'])
            request: Deployment request (gives the working directory)
            on_stdout: Called per stdout line; lines are echoed if None
            cancel: Event that, once set, forwards SIGINT to the child once

        Returns:
            ExecutionResult object

        Raises:
            SpawnError: If the child cannot be started
        """
        cmd = [*self.command_prefix, *args]
        cmd_string = self._format(args)
        self.logger.log_command(cmd_string)

        try:
            process = subprocess.Popen(
                cmd,
                cwd=request.working_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
                env=self._merged_env(),
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(cmd_string, e.strerror or str(e)) from e

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        pumps = [
            threading.Thread(
                target=self._pump,
                args=(process.stdout, stdout_lines, "stdout", on_stdout or self._echo),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(process.stderr, stderr_lines, "stderr", self._forward_stderr),
                daemon=True,
            ),
        ]
        for pump in pumps:
            pump.start()

        forwarded = False
        while True:
            try:
                process.wait(timeout=APPLY_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set() and not forwarded:
                    self.logger.log(
                        f"Forwarding interrupt to `{cmd_string}`", "WARNING"
                    )
                    try:
                        process.send_signal(signal.SIGINT)
                    except ProcessLookupError:
                        pass
                    forwarded = True

        for pump in pumps:
            pump.join()

        return ExecutionResult(
            returncode=process.returncode,
            stdout="\n".join(stdout_lines),
            stderr="\n".join(stderr_lines),
            command=cmd_string,
        )

    def check_installed(self) -> None:
        """
        Check that Terraform can be executed.

        Raises:
            SpawnError: If the binary is missing, unusable, or fails `-version`
        """
        cmd_string = self._format(["-version"])
        self.logger.log_command(cmd_string)
        try:
            result = subprocess.run(
                [*self.command_prefix, "-version"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self._merged_env(),
                check=False,
            )
        except OSError as e:
            raise SpawnError(cmd_string, e.strerror or str(e)) from e

        if result.returncode != 0:
            raise SpawnError(cmd_string, ERROR_TERRAFORM_MISSING)

    def init(self, request: DeploymentRequest) -> ExecutionResult:
        """
        Initialize the Terraform working directory.

        Raises:
            SpawnError: If Terraform cannot be started
            InitError: If init exits non-zero
        """
        result = self._run_command(["init", "-input=false", "-no-color"], request)
        if result.is_failure:
            raise InitError(result.command, result.returncode, result.stderr)
        return result

    def apply(
        self,
        request: DeploymentRequest,
        cancel: Optional[threading.Event] = None,
    ) -> List[OutputVariable]:
        """
        Apply the configuration and return its outputs.

        Progress is read from `-json` events and echoed as plain messages.
        Outputs come from the `outputs` event; `terraform output -json`
        is queried only if that event was not seen.

        Args:
            request: Deployment request
            cancel: Event that forwards an interrupt to Terraform once set

        Returns:
            Ordered output variables

        Raises:
            SpawnError: If Terraform cannot be started
            ApplyError: If apply exits non-zero
            OutputError: If the fallback output query fails or cannot be started
        """
        stream = _ApplyStream(self._echo)
        args = [
            "apply",
            "-auto-approve",
            "-input=false",
            "-json",
            *request.var_args(),
        ]
        result = self._run_command(args, request, on_stdout=stream, cancel=cancel)

        if result.is_failure:
            details = result.stderr.strip() or "\n".join(stream.diagnostics)
            raise ApplyError(result.command, result.returncode, details)

        if stream.outputs is not None:
            return stream.outputs

        # Apply succeeded, so resources exist: report a spawn failure as an output failure
        self.logger.debug("No outputs event in apply stream, querying outputs")
        try:
            return self.read_outputs(request)
        except SpawnError as e:
            raise OutputError(e.command, None, e.reason) from e

    def destroy(self, request: DeploymentRequest) -> ExecutionResult:
        """
        Destroy everything the configuration manages.

        Destroying an empty or partially created stack is a no-op for
        Terraform and succeeds like any other destroy.

        Raises:
            SpawnError: If Terraform cannot be started
            DestroyError: If destroy exits non-zero
        """
        args = [
            "destroy",
            "-auto-approve",
            "-input=false",
            "-no-color",
            *request.var_args(),
        ]
        result = self._run_command(args, request)
        if result.is_failure:
            raise DestroyError(result.command, result.returncode, result.stderr)
        return result

    def read_outputs(self, request: DeploymentRequest) -> List[OutputVariable]:
        """
        Query outputs of the current state.

        Raises:
            SpawnError: If Terraform cannot be started
            OutputError: If the query fails or returns invalid JSON
        """
        result = self._run_command(
            ["output", "-json"], request, on_stdout=lambda line: None
        )
        if result.is_failure:
            raise OutputError(result.command, result.returncode, result.stderr)

        if not result.stdout.strip():
            return []
        try:
            raw_outputs = json.loads(result.stdout)
        except ValueError as e:
            raise OutputError(result.command, result.returncode, f"Invalid JSON: {e}")
        if not isinstance(raw_outputs, dict):
            raise OutputError(
                result.command, result.returncode, "Expected a JSON object of outputs"
            )
        return parse_outputs(raw_outputs)

