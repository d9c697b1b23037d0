"""Namespace for handler wrappers; it currently holds no modules."""

__all__ = []