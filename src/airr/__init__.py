"""Task routing and execution-orchestration service."""

__version__ = "0.1.0"
