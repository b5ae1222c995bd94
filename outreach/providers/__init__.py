"""Telephony and voice provider clients."""

from .base import CallPlacement, CallPlacer, PlacedCall, SpeechSynthesizer

__all__ = ["CallPlacement", "CallPlacer", "PlacedCall", "SpeechSynthesizer"]
