"""
Mask analysis and compositing for segmentation previews.

Segmentation providers are inconsistent about how they encode a mask: some
return a transparent PNG whose alpha channel carries the cutout, others
return an opaque black/white image where brightness carries it. This module
detects which encoding a mask uses, composites the mask against a base
raster to build a per-object preview, and extracts the normalized bounding
box of the foreground.
"""

import logging
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from studio_config.constants import MaskConfig
from studio_utils.image_processing import ensure_rgba, resize_to
from studio_utils.logger import get_logger

logger = get_logger('masking')


class MaskEncoding(Enum):
    """Where a mask stores its per-pixel opacity."""
    ALPHA = "alpha"
    LUMINANCE = "luminance"


@dataclass(frozen=True)
class MaskAnalysis:
    encoding: MaskEncoding
    has_alpha_variation: bool
    has_rgb_variation: bool


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in percent of the mask's own width/height."""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}

    def to_pixels(self, width, height):
        """Convert back to an ``(x, y, w, h)`` pixel rectangle on a canvas of the given size."""
        return (
            int(round(self.x * width / 100.0)),
            int(round(self.y * height / 100.0)),
            int(round(self.width * width / 100.0)),
            int(round(self.height * height / 100.0)),
        )


def detect_mask_encoding(mask: np.ndarray) -> MaskAnalysis:
    """
    Classify a mask as alpha-channel or luminance encoded.

    Only the first ``MaskConfig.ENCODING_SAMPLE_BYTES`` bytes of the flattened
    RGBA buffer are inspected. Any alpha below 255 in that prefix selects
    alpha mode, even when the RGB channels also vary; otherwise the red
    channel is treated as opacity.

    Note:
        A mask whose alpha only varies outside the sampled prefix is
        classified as luminance.

    Args:
        mask: Mask raster, any channel layout accepted by ``ensure_rgba``

    Returns:
        MaskAnalysis with the chosen encoding and both variation flags
    """
    rgba = ensure_rgba(mask)
    flat = rgba.reshape(-1)[:MaskConfig.ENCODING_SAMPLE_BYTES]
    sample = flat.reshape(-1, 4)

    has_alpha_variation = bool(np.any(sample[:, 3] < MaskConfig.OPAQUE_ALPHA))
    has_rgb_variation = bool(np.any(sample[:, 0] != sample[:, 3]))

    encoding = MaskEncoding.ALPHA if has_alpha_variation else MaskEncoding.LUMINANCE
    logger.debug(
        f"Detected mask type: encoding={encoding.value}, "
        f"hasAlphaVariation={has_alpha_variation}, hasRGBVariation={has_rgb_variation}"
    )
    return MaskAnalysis(encoding, has_alpha_variation, has_rgb_variation)


def compose_masked_preview(base: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Cut ``base`` out through ``mask``.

    The mask is resampled to the base's exact size, its encoding detected on
    the resampled pixels, and its opacity copied into the alpha channel of a
    fresh RGBA raster that carries the base's RGB. Soft edges are preserved;
    no thresholding happens here.

    Args:
        base: Base raster (H, W, 3|4)
        mask: Mask raster of any size

    Returns:
        New (H, W, 4) uint8 array; neither input is modified
    """
    base_rgba = ensure_rgba(base)
    mask_rgba = ensure_rgba(mask)
    h, w = base_rgba.shape[:2]

    resized = resize_to(mask_rgba, w, h)
    analysis = detect_mask_encoding(resized)

    output = np.empty((h, w, 4), dtype=np.uint8)
    output[:, :, :3] = base_rgba[:, :, :3]
    if analysis.encoding is MaskEncoding.ALPHA:
        output[:, :, 3] = resized[:, :, 3]
    else:
        # White (255) = keep, black (0) = remove
        output[:, :, 3] = resized[:, :, 0]

    if logger.isEnabledFor(logging.DEBUG):
        alpha = output[:, :, 3]
        total = alpha.size
        opaque = int(np.count_nonzero(alpha > MaskConfig.REPORT_OPAQUE_MIN))
        semi = int(np.count_nonzero((alpha > MaskConfig.REPORT_SEMI_MIN) & (alpha <= MaskConfig.REPORT_OPAQUE_MIN)))
        logger.debug(
            f"Composited preview {w}x{h} from mask {mask_rgba.shape[1]}x{mask_rgba.shape[0]}: "
            f"opaque={opaque}, semi={semi}, transparent={total - opaque - semi}, "
            f"{opaque / total * 100:.1f}% opaque"
        )

    return output


def extract_bounding_box(mask: np.ndarray, threshold: int = MaskConfig.BBOX_ALPHA_THRESHOLD) -> Optional[BoundingBox]:
    """
    Return the normalized box enclosing every pixel whose alpha exceeds ``threshold``.

    Scans the full mask (no sampling). The box is inclusive on both ends, so a
    single foreground pixel yields a one-pixel-wide, one-pixel-tall box.

    Args:
        mask: Mask raster (H, W, 4); other layouts are normalized first
        threshold: Alpha cutoff on the 0-255 scale

    Returns:
        BoundingBox in percent of the mask's width/height, or None if empty
    """
    rgba = ensure_rgba(mask)
    h, w = rgba.shape[:2]
    foreground = rgba[:, :, 3] > threshold

    rows = np.flatnonzero(foreground.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(foreground.any(axis=0))

    min_y, max_y = int(rows[0]), int(rows[-1])
    min_x, max_x = int(cols[0]), int(cols[-1])

    return BoundingBox(
        x=min_x / w * 100,
        y=min_y / h * 100,
        width=(max_x - min_x + 1) / w * 100,
        height=(max_y - min_y + 1) / h * 100,
    )
