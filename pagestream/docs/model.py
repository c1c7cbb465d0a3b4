from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from pagestream.render.draw import draw_page

logger = logging.getLogger(__name__)

# Minimal used-content box reported for every page (fractions of the page).
MINIMAL_BBOX = (0.01, 0.01, -0.01, -0.01)


@dataclass
class DocumentProps:
    title: str
    pages: int


@dataclass
class Page:
    """A page opened for one render/inspect cycle.

    The page owns ``image`` until :meth:`close` drops it.
    """

    number: int
    image: Optional[np.ndarray]
    width: int
    height: int

    @classmethod
    def from_image(cls, number: int, image: np.ndarray) -> "Page":
        h, w = image.shape[:2]
        return cls(number=number, image=image, width=w, height=h)

    @property
    def is_closed(self) -> bool:
        return self.image is None

    def get_size(self, zoom: float = 1.0) -> Tuple[float, float]:
        return self.width * zoom, self.height * zoom

    def get_used_bbox(self) -> Tuple[float, float, float, float]:
        return MINIMAL_BBOX

    def draw(self, target: np.ndarray) -> bool:
        """Scale the page into ``target``; False if the page was already closed."""
        if self.image is None:
            logger.error("Page %d: no image to draw", self.number)
            return False
        draw_page(self.image, target)
        return True

    def close(self) -> None:
        self.image = None

    def __enter__(self) -> "Page":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
