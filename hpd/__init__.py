"""HPD - HTTP Protocol Diagnostics."""

__version__ = "0.1.0"
