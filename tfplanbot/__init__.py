"""Pull-request driven Terraform planning: project discovery, locking, hooks and markdown reports."""

__version__ = "0.1.0"