"""
Intake - Memory Budget

Admission control for large in-memory buffers. ``admit`` and ``release`` are
the only mutators; the outstanding estimate is never negative and never
exceeds the ceiling after a successful admit.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from intake.exceptions import MemoryExhaustedError

logger = logging.getLogger(__name__)

WarningCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class BudgetUsage:
    """Snapshot of the outstanding estimate."""

    bytes: int
    mb: float
    percentage: float


class MemoryBudget:
    """
    Shared counter of outstanding allocation estimates against a ceiling.

    One budget is shared by every concurrent producer of large buffers.
    """

    def __init__(self, ceiling: int, estimate_multiplier: int = 2):
        """
        Initialize the budget.

        Args:
            ceiling: Maximum outstanding estimate in bytes
            estimate_multiplier: Factor applied to a file size to estimate
                its processing footprint
        """
        if ceiling <= 0:
            raise ValueError("ceiling must be positive")
        self.ceiling = ceiling
        self.estimate_multiplier = estimate_multiplier
        self._outstanding = 0
        self._warnings: list[WarningCallback] = []

    @property
    def outstanding(self) -> int:
        return self._outstanding

    @property
    def available(self) -> int:
        return self.ceiling - self._outstanding

    def estimate_for(self, size: int) -> int:
        """Estimated footprint of processing ``size`` bytes."""
        return size * self.estimate_multiplier

    def on_warning(self, callback: WarningCallback) -> None:
        """Register ``callback(requested_total, ceiling)`` for denied admissions."""
        self._warnings.append(callback)

    def admit(self, estimate: int) -> bool:
        """
        Reserve ``estimate`` bytes if it fits under the ceiling.

        A rejected admission leaves the outstanding estimate untouched.

        Returns:
            True if reserved, False if it would exceed the ceiling
        """
        if estimate < 0:
            raise ValueError("estimate must not be negative")

        requested = self._outstanding + estimate
        if requested > self.ceiling:
            logger.warning(
                "Memory admission denied: %d requested, %d outstanding, ceiling %d",
                estimate, self._outstanding, self.ceiling,
            )
            for callback in list(self._warnings):
                callback(requested, self.ceiling)
            return False

        self._outstanding = requested
        return True

    def release(self, estimate: int) -> None:
        """Return ``estimate`` bytes; the outstanding estimate floors at zero."""
        if estimate < 0:
            raise ValueError("estimate must not be negative")
        self._outstanding = max(0, self._outstanding - estimate)

    @contextmanager
    def reserved(self, estimate: int, file_name: str | None = None) -> Iterator[int]:
        """
        Hold ``estimate`` bytes for the duration of the block.

        The reservation is released on both the success and failure paths.

        Raises:
            MemoryExhaustedError: If admission is denied; nothing is reserved
        """
        if not self.admit(estimate):
            raise MemoryExhaustedError(
                "Insufficient memory to process file",
                estimate=estimate,
                outstanding=self._outstanding,
                ceiling=self.ceiling,
                file_name=file_name,
            )
        try:
            yield estimate
        finally:
            self.release(estimate)

    def usage(self) -> BudgetUsage:
        return BudgetUsage(
            bytes=self._outstanding,
            mb=self._outstanding / (1024 * 1024),
            percentage=self._outstanding / self.ceiling * 100,
        )

    def reset(self) -> None:
        self._outstanding = 0
