#!/usr/bin/env python3
"""
Stand-in for the terraform binary used by the test suite.

Behavior is driven by environment variables:
    STUB_TF_LOG               file that receives one line per invocation (argv as JSON)
    STUB_TF_STATE             file that marks "resources exist" (created by apply)
    STUB_TF_FAIL              comma separated subcommands that exit non-zero
    STUB_TF_OUTPUTS           JSON object of name -> value for the outputs
    STUB_TF_NO_OUTPUTS_EVENT  if set, apply -json emits no outputs event
    STUB_TF_APPLY_BLOCK       if set, apply blocks until interrupted
"""

import json
import os
import sys
import time


def _outputs():
    raw = json.loads(os.environ.get("STUB_TF_OUTPUTS") or "{}")
    return {
        name: {"sensitive": False, "type": "string", "value": value}
        for name, value in raw.items()
    }


def _emit(level, message, **extra):
    event = {"@level": level, "@message": message, **extra}
    print(json.dumps(event), flush=True)


def _fail(command, code=1):
    print(f"Error: stub failure in {command}", file=sys.stderr, flush=True)
    sys.exit(code)


def main(argv):
    command = argv[1] if len(argv) > 1 else ""
    failing = {c for c in os.environ.get("STUB_TF_FAIL", "").split(",") if c}
    state = os.environ.get("STUB_TF_STATE")

    log_path = os.environ.get("STUB_TF_LOG")
    if log_path:
        with open(log_path, "a") as f:
            f.write(json.dumps(argv[1:]) + "\n")

    if command == "-version":
        if "version" in failing:
            sys.exit(1)
        print("Terraform v1.7.0")
        return

    if command in failing:
        if command == "apply":
            _emit("error", "Error: stub failure in apply", type="diagnostic",
                  diagnostic={"severity": "error", "summary": "stub failure in apply"})
        _fail(command)

    if command == "init":
        print("Terraform has been successfully initialized!")
    elif command == "apply":
        _emit("info", "Terraform 1.7.0", type="version")
        if os.environ.get("STUB_TF_APPLY_BLOCK"):
            try:
                while True:
                    time.sleep(0.05)
            except KeyboardInterrupt:
                print("Interrupt received. Gracefully shutting down...", file=sys.stderr, flush=True)
                sys.exit(1)
        if state:
            with open(state, "w") as f:
                f.write("created\n")
        _emit("info", "Apply complete! Resources: 1 added, 0 changed, 0 destroyed.",
              type="change_summary")
        if not os.environ.get("STUB_TF_NO_OUTPUTS_EVENT"):
            _emit("info", "Outputs: %d" % len(_outputs()), type="outputs", outputs=_outputs())
    elif command == "output":
        print(json.dumps(_outputs(), indent=2))
    elif command == "destroy":
        # Destroying nothing is not an error
        if state and os.path.exists(state):
            os.remove(state)
            print("Destroy complete! Resources: 1 destroyed.")
        else:
            print("No changes. No objects need to be destroyed.")
    else:
        _fail(command or "<none>")


if __name__ == "__main__":
    main(sys.argv)
