"""Abstract provider interfaces.

``CallPlacer`` is implemented once per deployed call variant (VAPI or
Twilio).  ``SpeechSynthesizer`` streams text-to-speech audio for the
Twilio media relay.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from outreach.scripts import CallScript


@dataclass
class CallPlacement:
    """Everything a provider needs to dial one lead."""

    phone_number: str  # already normalized
    script: CallScript
    inquiry_id: Optional[str] = None
    preferred_area: Optional[str] = None
    budget: Optional[str] = None

    @property
    def metadata(self) -> dict[str, str]:
        """Correlation bundle echoed back by the provider in later events."""
        return {
            "inquiryId": self.inquiry_id or "",
            "language": self.script.language.value,
            "preferredArea": self.preferred_area or "",
            "budget": self.budget or "",
        }


@dataclass
class PlacedCall:
    """The provider's acceptance of a call request."""

    call_id: Optional[str]
    data: dict[str, Any] = field(default_factory=dict)


class CallPlacer(ABC):
    """Places outbound calls through one telephony/voice provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and error messages."""

    @abstractmethod
    def missing_config(self) -> list[str]:
        """Names of required credentials that are not configured."""

    @abstractmethod
    async def place_call(self, placement: CallPlacement) -> PlacedCall:
        """Ask the provider to dial ``placement.phone_number``.

        Raises:
            ProviderError: the provider answered with a non-success status.
                Its status code and body are carried unchanged.
        """


class SpeechSynthesizer(ABC):
    """Text-to-speech that yields telephony audio as it is produced."""

    @abstractmethod
    def stream(self, text: str) -> AsyncIterator[bytes]:
        """Yield 8kHz mu-law audio chunks for ``text``.

        Chunks are yielded as soon as the provider sends them so playback
        can begin before synthesis finishes.
        """
