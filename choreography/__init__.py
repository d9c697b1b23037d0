"""Choreographic programming: protocols as data, run through effect handlers."""

__version__ = "0.1.1"

__all__ = ["algebra", "codec", "handler", "interpreter", "runtime", "testing"]