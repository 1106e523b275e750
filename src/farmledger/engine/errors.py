"""Exception types raised by the farm ledger.

Every top-level farm operation either commits in full or raises one of these
after restoring the ledger and token balances to their pre-call state.
"""

from __future__ import annotations


class FarmError(Exception):
    """Base class for all ledger errors."""


class Unauthorized(FarmError):
    """Raised when a non-privileged caller hits an owner-only or ledger-only entry point."""


class InvalidArgument(FarmError, ValueError):
    """Raised for zero identities, zero rates, duplicate pools and unknown reward tokens."""


class InsufficientBalance(FarmError):
    """Raised when a withdrawal exceeds the caller's stake."""


class NotStarted(FarmError):
    """Raised when farming has not started yet."""


class AlreadyStarted(FarmError):
    """Raised when the start time is set a second time."""


class Paused(FarmError):
    """Raised while the circuit breaker is engaged."""


class TransferFailed(FarmError):
    """Raised when the value-transfer primitive cannot move the requested amount."""


class ReentrantCall(FarmError):
    """Raised when a guarded region is entered again before it was released."""
