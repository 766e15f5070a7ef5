"""Tests for the Terraform subprocess client."""

import io
import sys
import threading

import pytest

from atar.exceptions import (
    ApplyError,
    DestroyError,
    InitError,
    OperationError,
    OutputError,
    SpawnError,
)
from atar.models import OutputVariable
from atar.terraform_utils import (
    TerraformManager,
    _ApplyStream,
    parse_outputs,
    render_value,
)
from conftest import read_invocations


class TestParseOutputs:
    """Test conversion of Terraform output JSON."""

    def test_values_are_rendered(self):
        """Strings stay raw; everything else becomes compact JSON."""
        assert render_value("1.2.3.4") == "1.2.3.4"
        assert render_value(3) == "3"
        assert render_value(True) == "true"
        assert render_value(["a", "b"]) == '["a","b"]'
        assert render_value({"port": 80}) == '{"port":80}'

    def test_order_is_preserved(self):
        """Outputs keep the order Terraform reported them in."""
        raw = {
            "zeta": {"value": "z"},
            "alpha": {"value": "a"},
            "mid": {"value": 1},
        }

        outputs = parse_outputs(raw)

        assert [o.name for o in outputs] == ["zeta", "alpha", "mid"]

    def test_sensitive_without_value(self):
        """Sensitive outputs are kept even when the value is withheld."""
        raw = {
            "password": {"sensitive": True},
            "broken": {"type": "string"},
            "not_a_dict": "oops",
        }

        outputs = parse_outputs(raw)

        assert outputs == [OutputVariable("password", "", sensitive=True)]


class TestApplyStream:
    """Test handling of `terraform apply -json` lines."""

    def test_messages_are_echoed_and_outputs_kept(self):
        echoed = []
        stream = _ApplyStream(echoed.append)

        stream('{"@level":"info","@message":"aws_instance.web: Creating...","type":"apply_start"}')
        stream(
            '{"@level":"info","@message":"Outputs: 1","type":"outputs",'
            '"outputs":{"endpoint":{"sensitive":false,"value":"1.2.3.4"}}}'
        )

        assert echoed == ["aws_instance.web: Creating...", "Outputs: 1"]
        assert stream.outputs == [OutputVariable("endpoint", "1.2.3.4")]

    def test_plain_lines_pass_through(self):
        echoed = []
        stream = _ApplyStream(echoed.append)

        stream("not json at all")
        stream("[1, 2]")

        assert echoed == ["not json at all", "[1, 2]"]
        assert stream.outputs is None

    def test_error_diagnostics_are_collected(self):
        stream = _ApplyStream(lambda line: None)

        stream(
            '{"@level":"error","@message":"Error: quota","type":"diagnostic",'
            '"diagnostic":{"summary":"quota exceeded","detail":"limit 5"}}'
        )

        assert stream.diagnostics == ["quota exceeded: limit 5"]


class TestSpawnFailures:
    """Spawn failures are distinct from non-zero exits."""

    def test_missing_binary(self, request_for, quiet_logger):
        manager = TerraformManager("/nonexistent/bin/terraform-missing", logger=quiet_logger)

        with pytest.raises(SpawnError) as exc_info:
            manager.check_installed()

        assert not isinstance(exc_info.value, OperationError)

    def test_missing_binary_on_apply(self, request_for, quiet_logger):
        manager = TerraformManager("/nonexistent/bin/terraform-missing", logger=quiet_logger)

        with pytest.raises(SpawnError):
            manager.apply(request_for())

    def test_version_failure(self, stub_manager):
        manager = stub_manager(STUB_TF_FAIL="version")

        with pytest.raises(SpawnError) as exc_info:
            manager.check_installed()

        assert "Terraform must be installed" in str(exc_info.value)


class TestTerraformManager:
    """Test Terraform operations against the stub engine."""

    def test_check_installed(self, stub_manager):
        stub_manager().check_installed()

    def test_init(self, stub_manager, request_for, stub_env, tmp_path):
        result = stub_manager().init(request_for())

        assert result.is_success
        assert "successfully initialized" in result.stdout
        assert read_invocations(tmp_path / "invocations.log")[0][0] == "init"

    def test_init_failure(self, stub_manager, request_for):
        with pytest.raises(InitError) as exc_info:
            stub_manager(STUB_TF_FAIL="init").init(request_for())

        assert exc_info.value.phase == "init"
        assert exc_info.value.exit_code == 1

    def test_apply_returns_ordered_outputs(self, stub_manager, request_for):
        outputs = stub_manager().apply(request_for())

        assert outputs == [
            OutputVariable("endpoint", "1.2.3.4"),
            OutputVariable("id", "i-123"),
        ]

    def test_apply_passes_variables(self, stub_manager, request_for, tmp_path):
        stub_manager().apply(request_for(region="us-east-1", instance_type="t3.micro"))

        argv = read_invocations(tmp_path / "invocations.log")[0]
        assert argv[0] == "apply"
        assert "-auto-approve" in argv
        assert "-json" in argv
        assert argv[argv.index("region=us-east-1") - 1] == "-var"
        assert argv[argv.index("instance_type=t3.micro") - 1] == "-var"

    def test_apply_progress_is_visible(self, stub_manager, request_for):
        manager = stub_manager()

        manager.apply(request_for())

        assert "Apply complete!" in manager._stdout.getvalue()

    def test_apply_falls_back_to_output_query(self, stub_manager, request_for, tmp_path):
        manager = stub_manager(STUB_TF_NO_OUTPUTS_EVENT="1")

        outputs = manager.apply(request_for())

        assert [o.name for o in outputs] == ["endpoint", "id"]
        subcommands = [argv[0] for argv in read_invocations(tmp_path / "invocations.log")]
        assert subcommands == ["apply", "output"]

    def test_apply_failure(self, stub_manager, request_for):
        manager = stub_manager(STUB_TF_FAIL="apply")

        with pytest.raises(ApplyError) as exc_info:
            manager.apply(request_for())

        error = exc_info.value
        assert error.exit_code == 1
        assert "stub failure in apply" in error.stderr
        # stderr is forwarded live as well as buffered
        assert "stub failure in apply" in manager._stderr.getvalue()

    def test_cancel_forwards_interrupt(self, stub_manager, request_for):
        manager = stub_manager(STUB_TF_APPLY_BLOCK="1")
        cancel = threading.Event()
        timer = threading.Timer(0.5, cancel.set)
        timer.start()

        try:
            with pytest.raises(ApplyError):
                manager.apply(request_for(), cancel=cancel)
        finally:
            timer.cancel()

    def test_destroy(self, stub_manager, request_for, stub_env):
        manager = stub_manager()
        request = request_for()
        manager.apply(request)

        result = manager.destroy(request)

        assert result.is_success
        assert "1 destroyed" in result.stdout

    def test_destroy_is_idempotent(self, stub_manager, request_for):
        """Destroying a stack that does not exist is a normal success."""
        manager = stub_manager()
        request = request_for()

        assert manager.destroy(request).is_success
        assert manager.destroy(request).is_success

    def test_destroy_failure(self, stub_manager, request_for):
        with pytest.raises(DestroyError) as exc_info:
            stub_manager(STUB_TF_FAIL="destroy").destroy(request_for())

        assert exc_info.value.phase == "destroy"
        assert "stub failure in destroy" in exc_info.value.context

    def test_read_outputs(self, stub_manager, request_for):
        outputs = stub_manager().read_outputs(request_for())

        assert [(o.name, o.value) for o in outputs] == [
            ("endpoint", "1.2.3.4"),
            ("id", "i-123"),
        ]

    def test_output_query_spawn_failure_after_apply(
        self, vanishing_terraform, stub_env, request_for, quiet_logger
    ):
        """Once apply succeeded, a spawn failure is an output failure."""
        manager = TerraformManager(
            str(vanishing_terraform),
            logger=quiet_logger,
            env={**stub_env, "STUB_TF_NO_OUTPUTS_EVENT": "1"},
            stdout=io.StringIO(),
            stderr=io.StringIO(),
        )

        with pytest.raises(OutputError) as exc_info:
            manager.apply(request_for())

        error = exc_info.value
        assert not isinstance(error, SpawnError)
        assert error.exit_code is None
        assert "could not be executed" in error.message
        assert "output" in error.command


class TestOutputDraining:
    """Child output is drained even when the console stream is gone."""

    def test_closed_stdout_does_not_block_child(self, request_for, quiet_logger):
        closed = io.StringIO()
        closed.close()
        # well past a 64 KiB pipe buffer
        chatty = [sys.executable, "-c", "for i in range(5000): print('x' * 100)"]
        manager = TerraformManager(
            chatty, logger=quiet_logger, stdout=closed, stderr=io.StringIO()
        )
        results = []

        worker = threading.Thread(
            target=lambda: results.append(manager.destroy(request_for())),
            daemon=True,
        )
        worker.start()
        worker.join(timeout=30)

        assert not worker.is_alive()
        assert results[0].is_success
        assert len(results[0].stdout.splitlines()) == 5000

    def test_closed_stderr_does_not_block_child(self, request_for, quiet_logger):
        closed = io.StringIO()
        closed.close()
        chatty = [
            sys.executable,
            "-c",
            "import sys\nfor i in range(5000): sys.stderr.write('e' * 100 + '\\n')\nsys.exit(1)",
        ]
        manager = TerraformManager(
            chatty, logger=quiet_logger, stdout=io.StringIO(), stderr=closed
        )
        errors = []

        def target():
            try:
                manager.destroy(request_for())
            except DestroyError as e:
                errors.append(e)

        worker = threading.Thread(target=target, daemon=True)
        worker.start()
        worker.join(timeout=30)

        assert not worker.is_alive()
        assert errors[0].exit_code == 1
        assert len(errors[0].stderr.splitlines()) == 5000
