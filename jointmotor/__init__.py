"""Command codes, CAN frames, status decoding and safety halting for a joint motor."""

__version__ = "0.1.0"
__all__ = ["commands", "status", "frames", "driver"]