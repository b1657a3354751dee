"""Pydantic models for the relayed records."""
from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


# ── Records ───────────────────────────────────────────────────────────────────

class CoordinateRecord(WireModel):
    distance: int | float
    x: int | float
    z: int | float
    photo_capture: Literal[0, 1] = 0
    timestamp: int = Field(default_factory=now_ms)


class ImageRecord(WireModel):
    url: str
    metadata: dict[str, Any] = Field(default_factory=dict)  # may gain "bannerData"
    timestamp: int = Field(default_factory=now_ms)


class BannerRecord(WireModel):
    image_url: str
    brand: str
    position: str
    type: str
    timestamp: int = Field(default_factory=now_ms)


# ── Push events ───────────────────────────────────────────────────────────────

def push_event(event_type: str, data: Any = None) -> dict:
    """Envelope for one outbound message; clear signals carry no data."""
    if data is None:
        return {"type": event_type}
    return {"type": event_type, "data": data}
