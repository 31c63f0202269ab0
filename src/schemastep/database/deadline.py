"""Explicit deadlines threaded through every database call."""

import time
from dataclasses import dataclass

from ..utils.logging import DeadlineExceededError


@dataclass(frozen=True)
class Deadline:
    """An absolute expiry point on the monotonic clock.

    A child deadline never outlives its parent: ``Deadline.after(5, parent)``
    expires at whichever of the two comes first.
    """

    expires_at: float

    @classmethod
    def after(cls, seconds: float, parent: "Deadline | None" = None) -> "Deadline":
        """Create a deadline ``seconds`` from now, capped by ``parent``."""
        expires_at = time.monotonic() + seconds
        if parent is not None:
            expires_at = min(expires_at, parent.expires_at)
        return cls(expires_at)

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, operation: str) -> None:
        """Raise DeadlineExceededError if the deadline has already passed."""
        if self.expired:
            raise DeadlineExceededError(
                f"deadline exceeded before {operation}",
                context={"operation": operation},
            )
