"""Exception types shared by the call initiator, reconciler and relay.

Internal code raises these and lets them propagate; only the HTTP layer in
``outreach.app`` turns them into responses.
"""

from __future__ import annotations

from typing import Any


class OutreachError(Exception):
    """Base class for errors raised by this package."""

    status_code: int = 500


class ConfigurationError(OutreachError):
    """Required credentials are missing. Raised before any network call."""


class InvalidRequestError(OutreachError):
    """The caller supplied an incomplete request."""

    status_code = 400


class ProviderError(OutreachError):
    """A telephony or voice provider answered with a non-success status.

    ``status_code`` and ``body`` are the provider's own, untouched.
    """

    def __init__(self, provider: str, status_code: int, body: Any) -> None:
        super().__init__(f"{provider} returned {status_code}: {body}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class StoreError(OutreachError):
    """The appointment store rejected a read or write."""
