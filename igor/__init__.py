"""Igor — NVIDIA driver readiness diagnostics for Linux hosts."""

__version__ = "0.1.0"
