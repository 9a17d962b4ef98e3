"""Exceptions raised by cooperative workflows."""


class CoopError(ValueError):
    """Input rejected by a cooperative workflow."""


class OrderError(CoopError):
    """A service order workflow rule was violated."""


class RecordError(CoopError):
    """A registry, queue, account or settings change was rejected."""
