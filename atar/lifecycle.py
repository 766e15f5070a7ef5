"""
Lifecycle Controller

Sequences apply → ready → destroy for one ephemeral deployment and
guarantees that destroy is attempted on every path out of apply.
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from atar.constants import ERROR_DESTROY_MANUAL, READY_POLL_INTERVAL
from atar.exceptions import (
    AtarError,
    InitError,
    OperationError,
    SpawnError,
    StateTransitionError,
)
from atar.logger import DeployLogger
from atar.models import (
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentState,
    OutputVariable,
    TerminationCause,
    TRANSITIONS,
)
from atar.reporter import OutputReporter
from atar.signals import SignalInterceptor, signal_name
from atar.terraform_utils import TerraformManager


class LifecycleController:
    """
    State machine for a single deployment run.

    Flow:
        IDLE → APPLYING → READY → DESTROYING → DESTROYED
                        ↘ FAILED ↗            ↘ DESTROY_FAILED

    Termination signals are intercepted from the start of APPLYING. A
    signal during apply is recorded and acted upon once apply returns.
    Destroy runs at most once, and only if apply was invoked.
    """

    def __init__(
        self,
        client: TerraformManager,
        interceptor: Optional[SignalInterceptor] = None,
        reporter: Optional[OutputReporter] = None,
        logger: Optional[DeployLogger] = None,
        hold_seconds: Optional[float] = None,
        poll_interval: float = READY_POLL_INTERVAL,
    ):
        """
        Initialize the controller.

        Args:
            client: Terraform client (apply / destroy / outputs)
            interceptor: Signal interceptor (SIGINT/SIGTERM/SIGHUP by default)
            reporter: Output reporter
            logger: DeployLogger instance
            hold_seconds: Tear down on its own after this many seconds in READY
            poll_interval: Seconds between checks while waiting in READY
        """
        self.client = client
        self.logger = logger or DeployLogger("deployment", "deploy")
        self.interceptor = interceptor or SignalInterceptor(logger=self.logger)
        self.reporter = reporter or OutputReporter()
        self.hold_seconds = hold_seconds
        self.poll_interval = poll_interval

        self.state = DeploymentState.IDLE
        self.history: List[DeploymentState] = [DeploymentState.IDLE]
        self.outcome = DeploymentOutcome()
        self._cancel = threading.Event()
        self._apply_invoked = False
        self._destroy_invoked = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def _transition(self, new_state: DeploymentState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise StateTransitionError(
                f"Illegal state transition {self.state.value} -> {new_state.value}"
            )
        self.logger.debug(f"State: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        self.outcome.state = new_state

    def request_teardown(self, signum: int) -> None:
        """Signal callback: record the cause and release the READY wait."""
        self.outcome.signum = signum
        if self.outcome.cause is None:
            self.outcome.cause = TerminationCause.SIGNAL_RECEIVED
        self._cancel.set()

        if self.state == DeploymentState.APPLYING:
            self.logger.warning(
                f"{signal_name(signum)} received: resources will be destroyed once apply returns"
            )
        elif self.state == DeploymentState.DESTROYING:
            self.logger.warning(f"{signal_name(signum)} received: destroy already in progress")
        else:
            self.logger.warning(f"{signal_name(signum)} received: starting Terraform destroy")

    def run(self, request: DeploymentRequest) -> DeploymentOutcome:
        """
        Run the full lifecycle for `request`.

        Returns:
            DeploymentOutcome (use `.exit_code` for the process status)
        """
        with self.interceptor.register(self.request_teardown):
            self._transition(DeploymentState.APPLYING)

            self.logger.step("Initializing Terraform")
            try:
                self.client.check_installed()
                self.client.init(request)
            except SpawnError as e:
                self._fail_before_apply(e)
                self.outcome.spawn_error = e
                return self.outcome
            except InitError as e:
                self._fail_before_apply(e)
                self.outcome.apply_error = e
                return self.outcome
            self.logger.success("Terraform initialized")

            if self._cancel.is_set():
                self.logger.warning("Interrupted before apply: nothing was created")
                self.outcome.cancelled = True
                self._transition(DeploymentState.FAILED)
                return self.outcome

            try:
                with self._provisioned(request) as outputs:
                    self._hold(outputs)
            except SpawnError as e:
                self._fail_before_apply(e)
                self.outcome.spawn_error = e
            except OperationError:
                # Recorded by _provisioned; destroy already ran.
                pass

        return self.outcome

    def _fail_before_apply(self, error: AtarError) -> None:
        self.logger.log_error(error.message, error.context)
        if self.state == DeploymentState.APPLYING:
            self._transition(DeploymentState.FAILED)

    @contextmanager
    def _provisioned(self, request: DeploymentRequest) -> Iterator[List[OutputVariable]]:
        """
        Apply, yield the outputs, and destroy on every way out.

        A failed apply destroys right away (partial resources may exist)
        and re-raises the error.
        """
        self.logger.step("Applying Terraform configuration")
        self._apply_invoked = True
        try:
            outputs = self.client.apply(request, cancel=self._cancel)
        except SpawnError:
            self._apply_invoked = False
            raise
        except OperationError as e:
            self.outcome.apply_error = e
            if self.outcome.cause is None:
                self.outcome.cause = TerminationCause.APPLY_FAILED
            self.logger.log_error(e.message, e.context)
            self._transition(DeploymentState.FAILED)
            self._destroy(request)
            raise

        try:
            yield outputs
        finally:
            self._destroy(request)

    def _hold(self, outputs: List[OutputVariable]) -> None:
        """Keep resources alive until a signal or the hold duration ends."""
        self.outcome.outputs = list(outputs)

        if self._cancel.is_set():
            self.logger.warning("Interrupted during apply: destroying without waiting")
            return

        self._transition(DeploymentState.READY)
        self.reporter.report(outputs)
        self.logger.success("Resources deployed")
        self.logger.console.print(
            "\nPress Ctrl+C or send SIGTERM to destroy and exit."
        )
        self._wait_for_release()

    def _wait_for_release(self) -> None:
        deadline = None
        if self.hold_seconds is not None:
            deadline = time.monotonic() + self.hold_seconds

        while True:
            timeout = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.outcome.cause = TerminationCause.NORMAL_COMPLETION_REQUESTED
                    self.logger.warning("Hold duration elapsed: starting Terraform destroy")
                    return
                timeout = min(timeout, remaining)
            if self._cancel.wait(timeout):
                return

    def _destroy(self, request: DeploymentRequest) -> None:
        """Run destroy at most once; errors are recorded, never raised."""
        if self._destroy_invoked or not self._apply_invoked:
            return
        self._destroy_invoked = True
        self.outcome.destroy_attempted = True

        self._transition(DeploymentState.DESTROYING)
        self.logger.step("Destroying resources")
        try:
            self.client.destroy(request)
        except (OperationError, SpawnError) as e:
            self.outcome.destroy_error = e
            self._transition(DeploymentState.DESTROY_FAILED)
            self.logger.log_error(e.message, e.context)
            self.logger.log_error(
                "Manual cleanup required",
                ERROR_DESTROY_MANUAL.format(path=request.terraform_file),
            )
            return

        self._transition(DeploymentState.DESTROYED)
        self.logger.success("Resources destroyed")
