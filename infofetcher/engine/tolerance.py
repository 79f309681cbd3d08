"""Failure tolerance: how many failing servers per cycle the fetcher survives."""

import enum


class FailureTolerance(str, enum.Enum):
    """Per-cycle failure tolerance levels."""

    NONE = "none"  # all servers must respond
    ONE = "one"  # one failing server per cycle is tolerated
    ALL = "all"  # any number may fail (all failing in one cycle is still fatal)


def is_violation(tolerance: FailureTolerance, failures_before: int) -> bool:
    """True if a new failure is fatal, given the failures already tolerated this cycle."""
    tolerance = FailureTolerance(tolerance)
    if tolerance == FailureTolerance.NONE:
        return True
    if tolerance == FailureTolerance.ONE:
        return failures_before >= 1
    return False
