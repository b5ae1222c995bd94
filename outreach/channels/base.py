"""Audio frame type and the speech-to-text extension point.

Twilio delivers mu-law 8kHz audio.  Transcribers work on PCM 16kHz mono,
so inbound frames are decoded before they reach a :class:`SpeechToText`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass
class AudioFrame:
    """Normalized audio frame: PCM 16kHz mono int16 little-endian."""

    samples: bytes  # int16 LE PCM
    sample_rate: int = 16000
    channels: int = 1

    @property
    def duration_ms(self) -> float:
        """Duration of this frame in milliseconds."""
        num_samples = len(self.samples) // 2  # 2 bytes per int16 sample
        return (num_samples / self.sample_rate) * 1000

    @property
    def num_samples(self) -> int:
        """Number of int16 samples in this frame."""
        return len(self.samples) // 2


class SpeechToText(ABC):
    """Turns the caller's audio into text.

    No implementation ships with the relay: inbound audio is accepted and,
    when a transcriber is attached, handed to it.  Feeding the text into a
    conversational turn-taking loop is left to the implementation.
    """

    @abstractmethod
    def transcribe(self, frames: AsyncIterator[AudioFrame]) -> AsyncIterator[str]:
        """Consume PCM 16kHz frames for the whole call and yield utterances.

        ``frames`` ends when the call's media stream stops; a transcriber
        still running shortly after that is cancelled.
        """
