"""
Data Models
===========

Pydantic models for messages received on subscribed topics.

Models:
    - ImageMessage: One image published on the image topic
    - UnlockMessage: One signal published on the unlock topic
"""

from frame_extractor.models.input import ImageMessage, UnlockMessage

__all__ = [
    "ImageMessage",
    "UnlockMessage",
]
