"""Audio transports for the media relay."""

from .base import AudioFrame, SpeechToText
from .twilio_stream import StreamStart, TwilioMediaStream

__all__ = ["AudioFrame", "SpeechToText", "StreamStart", "TwilioMediaStream"]
