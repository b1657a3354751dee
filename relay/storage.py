"""In-memory history of coordinates, images and banner records.

Three independent sequences, held for the lifetime of the process:

  coordinates  oldest → newest, bounded (oldest evicted first)
  images       newest → oldest, unbounded unless max_images is set
  banners      oldest → newest, unbounded unless max_banners is set

All mutation happens on the event loop thread, so there is no locking.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Optional

from relay.config import MAX_BANNER_HISTORY, MAX_COORDINATE_HISTORY, MAX_IMAGE_HISTORY
from relay.models import BannerRecord, CoordinateRecord, ImageRecord

log = logging.getLogger(__name__)


class HistoryStore:
    def __init__(
        self,
        max_coordinates: int = MAX_COORDINATE_HISTORY,
        max_images: int = MAX_IMAGE_HISTORY,
        max_banners: int = MAX_BANNER_HISTORY,
    ) -> None:
        if max_coordinates < 1:
            raise ValueError("max_coordinates must be at least 1")
        self.max_coordinates = max_coordinates
        self.max_images = max_images or None
        self.max_banners = max_banners or None
        self._coordinates: deque[CoordinateRecord] = deque(maxlen=max_coordinates)
        self._images: list[ImageRecord] = []
        self._banners: deque[BannerRecord] = deque(maxlen=self.max_banners)

    # ── Coordinates ───────────────────────────────────────────────────────────

    def add_coordinate(self, rec: CoordinateRecord) -> CoordinateRecord:
        # deque(maxlen) drops from the left once full
        self._coordinates.append(rec)
        return rec

    def clear_coordinates(self) -> None:
        self._coordinates.clear()

    def snapshot_coordinates(self) -> list[dict]:
        return [c.dump() for c in self._coordinates]

    # ── Images ────────────────────────────────────────────────────────────────

    def add_image(self, rec: ImageRecord) -> ImageRecord:
        self._images.insert(0, rec)
        if self.max_images is not None and len(self._images) > self.max_images:
            dropped = len(self._images) - self.max_images
            del self._images[self.max_images:]
            log.debug("Image history full, dropped %d oldest", dropped)
        return rec

    def clear_images(self) -> None:
        self._images = []

    def snapshot_images(self) -> list[dict]:
        return [i.dump() for i in self._images]

    # ── Banners ───────────────────────────────────────────────────────────────

    def attach_banner(self, rec: BannerRecord) -> bool:
        """Store the banner; tag the newest image with the same url.

        Returns True if an image record was updated.
        """
        self._banners.append(rec)
        image = next((i for i in self._images if i.url == rec.image_url), None)
        if image is None:
            return False
        image.metadata["bannerData"] = rec.dump()
        return True

    def find_banner(self, image_url: str) -> Optional[BannerRecord]:
        """Linear scan, first match wins."""
        return next((b for b in self._banners if b.image_url == image_url), None)

    def snapshot_banners(self) -> list[dict]:
        return [b.dump() for b in self._banners]

    # ── Everything ────────────────────────────────────────────────────────────

    def clear_all(self) -> None:
        self.clear_coordinates()
        self.clear_images()
        self._banners.clear()

    def counts(self) -> dict[str, int]:
        return {
            "coordinates": len(self._coordinates),
            "images": len(self._images),
            "banners": len(self._banners),
        }
