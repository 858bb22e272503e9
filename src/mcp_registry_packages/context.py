"""
Cooperative cancellation and deadlines for registry validation.

Remote validation performs blocking HTTP calls. Callers hand a
:class:`ValidationContext` to the validators; the HTTP layer checks it before
every request and bounds each request's timeout by the remaining deadline,
so a cancelled or expired context aborts the fetch between requests and
surfaces :class:`~mcp_registry_packages.errors.ValidationCancelled` rather
than a generic fetch failure.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import ValidationCancelled


class CancellationToken:
    """
    Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()


class ValidationContext:
    """
    Caller-supplied cancellation token plus an optional deadline.

    Contexts are cheap and may be shared between validations that should be
    cancelled together (for example all packages of one publish request).
    """

    def __init__(self, token: Optional[CancellationToken] = None,
                 timeout_s: Optional[float] = None):
        """
        Args:
            token: Cancellation token (a private one is created if omitted)
            timeout_s: Seconds from now after which the context expires
        """
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        self.token = token or CancellationToken()
        self._deadline = time.monotonic() + timeout_s if timeout_s is not None else None

    @classmethod
    def background(cls) -> ValidationContext:
        """A context that is never cancelled and has no deadline."""
        return cls()

    def cancel(self) -> None:
        self.token.cancel()

    @property
    def cancelled(self) -> bool:
        return self.token.is_cancelled() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def bound_timeout(self, timeout_s: float) -> float:
        """Clamp a per-request timeout to the time left on the deadline."""
        remaining = self.remaining()
        return timeout_s if remaining is None else min(timeout_s, remaining)

    def check(self, what: str = "validation") -> None:
        """
        Raise if the context has been cancelled or its deadline has passed.

        Raises:
            ValidationCancelled: With a message distinguishing cancel from timeout
        """
        if self.token.is_cancelled():
            raise ValidationCancelled(f"{what} cancelled")
        if self.expired:
            raise ValidationCancelled(f"{what} deadline exceeded")


__all__ = ["CancellationToken", "ValidationContext"]
