"""
Input Message Schemas
=====================

Pydantic models for messages received on the image and unlock topics.

Image Topic Contract:
    {
        "seq": 1234,
        "stamp": 1707321234.567,
        "width": 640,
        "height": 480,
        "encoding": "bgr8",
        "step": 1920,
        "data": "<base64 pixel buffer>"
    }

Unlock Topic Contract:
    {"data": 1}

    Any payload is accepted; only the arrival matters.

Example:
    from frame_extractor.models.input import ImageMessage

    raw = await websocket.recv()
    message = ImageMessage.model_validate_json(raw)
    frame = message.to_frame(topic="/camera/image")
"""

import base64
import binascii
import time
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from frame_extractor.stream.frame import Frame


class ImageMessage(BaseModel):
    """
    Schema for image messages.

    Attributes:
        seq: Publisher sequence number
        stamp: UNIX timestamp set by the publisher (optional)
        width: Image width in pixels (0 for compressed payloads)
        height: Image height in pixels (0 for compressed payloads)
        encoding: Pixel encoding tag
        step: Row length in bytes (0 if unknown or compressed)
        data: Base64-encoded pixel buffer (may be empty)
    """

    seq: int = Field(default=0, ge=0, description="Publisher sequence number")

    stamp: Optional[float] = Field(
        default=None,
        gt=0,
        description="UNIX timestamp in seconds set by the publisher",
    )

    width: int = Field(default=0, ge=0, description="Image width in pixels")
    height: int = Field(default=0, ge=0, description="Image height in pixels")

    encoding: str = Field(..., description="Pixel encoding tag")

    step: int = Field(default=0, ge=0, description="Row length in bytes")

    data: str = Field(default="", description="Base64-encoded pixel buffer")

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "seq": 1234,
                "stamp": 1707321234.567,
                "width": 2,
                "height": 1,
                "encoding": "mono8",
                "step": 2,
                "data": "AP8=",
            }
        }

    @field_validator("data")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"data is not valid base64: {e}")
        return value

    def to_frame(self, topic: str = "", received_at: Optional[float] = None) -> Frame:
        """
        Build the internal Frame for this message.

        Args:
            topic: Topic the message arrived on
            received_at: Arrival time, used when the message has no stamp
        """
        stamp = self.stamp
        if stamp is None:
            stamp = received_at if received_at is not None else time.time()

        return Frame(
            data=base64.b64decode(self.data),
            encoding=self.encoding,
            width=self.width,
            height=self.height,
            step=self.step,
            stamp=stamp,
            seq=self.seq,
            topic=topic,
        )


class UnlockMessage(BaseModel):
    """Schema for unlock messages. The payload carries no meaning."""

    data: int = Field(default=0, ge=-128, le=127, description="Int8 payload")
