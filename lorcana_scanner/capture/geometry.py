"""Map the on-screen guide frame onto raw video frame pixels.

The preview is shown with an aspect-fill ("cover") transform: the frame is
scaled until it fills the viewport on both axes and the overflow is cropped.
Fractions of the viewport therefore do not equal fractions of the frame, so
every crop goes through the cover transform computed for the current frame
and viewport sizes. Nothing here is cached between frames.
"""

import math
from typing import Optional

from ..core.constants import (
    CN_REGION_HEIGHT,
    CN_REGION_LEFT,
    CN_REGION_TOP,
    CN_REGION_WIDTH,
    GUIDE_H,
    GUIDE_W,
    GUIDE_X,
    GUIDE_Y,
    INK_REGION_LEFT,
    INK_REGION_SIZE,
    INK_REGION_TOP,
)
from ..core.types import CoverTransform, CropSnapshot, GuideGeometry, PixelRect

DEFAULT_GUIDE = GuideGeometry(x=GUIDE_X, y=GUIDE_Y, w=GUIDE_W, h=GUIDE_H)


def compute_cover_transform(
    frame_width: int, frame_height: int, viewport_width: int, viewport_height: int
) -> Optional[CoverTransform]:
    """Compute the cover mapping, or None while any dimension is unknown."""
    if frame_width <= 0 or frame_height <= 0 or viewport_width <= 0 or viewport_height <= 0:
        return None

    # cover picks the larger scale so the frame fills both axes
    scale = max(viewport_width / frame_width, viewport_height / frame_height)
    visible_w = viewport_width / scale
    visible_h = viewport_height / scale
    return CoverTransform(
        frame_width=frame_width,
        frame_height=frame_height,
        viewport_width=viewport_width,
        viewport_height=viewport_height,
        offset_x=(frame_width - visible_w) / 2,
        offset_y=(frame_height - visible_h) / 2,
        visible_w=visible_w,
        visible_h=visible_h,
    )


def guide_rect(cover: CoverTransform, guide: GuideGeometry = DEFAULT_GUIDE):
    """Guide frame in (fractional) frame pixels as (x, y, w, h)."""
    x, y = cover.map_point(guide.x, guide.y)
    return x, y, guide.w * cover.visible_w, guide.h * cover.visible_h


def _clamp_rect(x: float, y: float, w: float, h: float, cover: CoverTransform) -> PixelRect:
    ix = max(0, math.floor(x))
    iy = max(0, math.floor(y))
    iw = min(math.floor(w), cover.frame_width - ix)
    ih = min(math.floor(h), cover.frame_height - iy)
    return PixelRect(ix, iy, max(0, iw), max(0, ih))


def compute_crop_rects(
    frame_width: int,
    frame_height: int,
    viewport_width: int,
    viewport_height: int,
    guide: GuideGeometry = DEFAULT_GUIDE,
) -> Optional[CropSnapshot]:
    """Pixel rects for the guide, collector-number band and ink sample.

    Returns None ("unavailable") when any input dimension is zero.
    """
    cover = compute_cover_transform(frame_width, frame_height, viewport_width, viewport_height)
    if cover is None:
        return None

    gx, gy, gw, gh = guide_rect(cover, guide)
    cn = _clamp_rect(
        gx + CN_REGION_LEFT * gw,
        gy + CN_REGION_TOP * gh,
        CN_REGION_WIDTH * gw,
        CN_REGION_HEIGHT * gh,
        cover,
    )
    ink = _clamp_rect(
        gx + INK_REGION_LEFT * gw,
        gy + INK_REGION_TOP * gh,
        INK_REGION_SIZE * gw,
        INK_REGION_SIZE * gh,
        cover,
    )
    return CropSnapshot(
        cover=cover,
        guide=PixelRect(round(gx), round(gy), round(gw), round(gh)),
        cn_region=cn,
        ink_region=ink,
    )
