"""Error types shared by the server and the client engine."""

from __future__ import annotations


class KrakenError(RuntimeError):
    """Base exception for Kraken Chat failures."""


class AuthorizationDenied(KrakenError):
    """Raised when an access predicate rejects an operation.

    The operation is rejected before anything is applied.
    """

    def __init__(self, action: str, resource: str) -> None:
        super().__init__(f"Not allowed to {action} {resource}")
        self.action = action
        self.resource = resource


class TransportUnavailable(KrakenError):
    """Raised when the real-time transport cannot deliver or cannot be reached."""


class IdentityResolutionAmbiguous(KrakenError):
    """Raised when a principal matches neither credential shape cleanly."""


class ConversationConflict(KrakenError):
    """Raised when a participant pair does not resolve to exactly one conversation."""

    def __init__(self, pair_key: str, candidates: int) -> None:
        super().__init__(
            f"Expected one conversation for pair {pair_key!r}, found {candidates}"
        )
        self.pair_key = pair_key
        self.candidates = candidates


class ResourceNotFound(KrakenError, LookupError):
    """Raised when a referenced row does not exist or is outside the caller's scope."""


class StoreUnavailable(KrakenError):
    """Raised when the durable message store cannot be read."""
