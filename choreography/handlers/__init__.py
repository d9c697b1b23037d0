"""Effect handlers: one that records effects and one that uses paired in-process channels."""

__all__ = ["recording", "session"]