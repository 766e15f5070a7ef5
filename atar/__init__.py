"""atar - ephemeral Terraform deployments that clean up after themselves."""

__version__ = "0.3.0"
