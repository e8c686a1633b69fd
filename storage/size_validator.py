"""Declared-size gate evaluated before any chunk bytes are written."""


class SizeValidator:
    """
    Rejects uploads whose declared total size reaches the configured ceiling.

    A ``max_size`` of 0 means unlimited.
    """

    def __init__(self, max_size: int = 0):
        if max_size < 0:
            raise ValueError(f"max_size must be >= 0, got {max_size}")
        self.max_size = max_size

    def is_valid(self, declared_total_size: int) -> bool:
        return self.max_size == 0 or declared_total_size < self.max_size
