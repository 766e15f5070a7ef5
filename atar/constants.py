"""
atar Constants

Centralized constants for magic values, defaults, and configuration.
"""

import signal

# Terraform Configuration
DEFAULT_TERRAFORM_BIN = "terraform"
TERRAFORM_AUTOMATION_ENV = {"TF_IN_AUTOMATION": "1"}

# Environment variables
ENV_TERRAFORM_BIN = "ATAR_TERRAFORM_BIN"
ENV_LOG_DIR = "ATAR_LOG_DIR"
ENV_DEBUG_FLAGS = ["DEBUG", "VERBOSE"]

# Polling intervals (seconds)
APPLY_POLL_INTERVAL = 0.2
READY_POLL_INTERVAL = 0.5

# Signals that start teardown (SIGHUP is POSIX only)
TERMINATION_SIGNALS = [
    sig
    for sig in (
        signal.SIGINT,
        signal.SIGTERM,
        getattr(signal, "SIGHUP", None),
    )
    if sig is not None
]

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"

# Sensitive output placeholder
SENSITIVE_PLACEHOLDER = "(sensitive value)"

# Output banner
OUTPUTS_BANNER_WIDTH = 62

# Error Messages
ERROR_TERRAFORM_MISSING = "Terraform must be installed and in PATH"
ERROR_DESTROY_MANUAL = (
    "Resources may still exist. Retry with: atar undeploy --terraform {path}"
)
