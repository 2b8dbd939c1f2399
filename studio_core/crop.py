"""
Cropping of layer rasters.

Cropping the photo that fed a segmentation run moves every pixel the segment
layers were cut from, so a crop on a source or AI layer purges all segment
layers.
"""

from dataclasses import dataclass
import numpy as np
from studio_config.constants import CropConfig
from studio_core.layers import LayerKind, LayerStore
from studio_utils.image_processing import ensure_rgba
from studio_utils.logger import get_logger

logger = get_logger('crop')

# Kinds whose raster can be the base of a segmentation run
BASE_KINDS = (LayerKind.SOURCE, LayerKind.AI)


@dataclass(frozen=True)
class PixelRect:
    """Crop rectangle in source-pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_dict(cls, data):
        return cls(
            x=int(round(data['x'])),
            y=int(round(data['y'])),
            width=int(round(data['width'])),
            height=int(round(data['height'])),
        )


def aspect_ratio(label):
    """Ratio for a preset label from ``CropConfig.ASPECT_PRESETS`` (None for Free)."""
    presets = dict(CropConfig.ASPECT_PRESETS)
    if label not in presets:
        raise ValueError(f"Unknown aspect preset: {label}")
    return presets[label]


def fit_aspect_rect(width: int, height: int, ratio=None) -> PixelRect:
    """
    Largest rectangle of the given width/height ``ratio`` centred in a
    ``width`` x ``height`` raster. Without a ratio the whole raster is used.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid raster size {width}x{height}")
    if not ratio:
        return PixelRect(0, 0, width, height)

    if width / height > ratio:
        crop_h = height
        crop_w = min(width, max(1, int(round(height * ratio))))
    else:
        crop_w = width
        crop_h = min(height, max(1, int(round(width / ratio))))
    return PixelRect((width - crop_w) // 2, (height - crop_h) // 2, crop_w, crop_h)


def crop_raster(source: np.ndarray, rect: PixelRect) -> np.ndarray:
    """
    Copy ``rect`` out of ``source`` into a new raster of exactly ``rect``'s size.

    Parts of the rectangle that fall outside the source stay fully
    transparent.

    Raises:
        ValueError: If the rectangle has no area
    """
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError(f"Invalid crop size {rect.width}x{rect.height}")

    src = ensure_rgba(source)
    h, w = src.shape[:2]
    output = np.zeros((rect.height, rect.width, 4), dtype=np.uint8)

    x0, y0 = max(rect.x, 0), max(rect.y, 0)
    x1, y1 = min(rect.x + rect.width, w), min(rect.y + rect.height, h)
    if x1 > x0 and y1 > y0:
        output[y0 - rect.y:y1 - rect.y, x0 - rect.x:x1 - rect.x] = src[y0:y1, x0:x1]
    else:
        logger.warning(f"Crop rectangle {rect} lies outside the {w}x{h} source")

    return output


def choose_crop_target(store: LayerStore):
    """
    Pick the layer a crop should apply to.

    The active layer wins unless it is a segment, in which case the most
    recent AI layer (or the source layer) is used instead.
    """
    active = store.active_layer
    if active is not None and active.kind is not LayerKind.SEGMENT:
        return active
    return store.base_layer


class CropEngine:
    def __init__(self, store: LayerStore):
        self.store = store

    def apply_crop(self, layer_id, cropped) -> bool:
        """
        Replace a layer's raster with ``cropped``.

        Returns:
            True if applied. Empty layers, unknown ids and layers of no
            known kind are rejected and leave the store untouched.
        """
        layer = self.store.find(layer_id) if layer_id is not None else None
        if layer is None:
            logger.warning(f"Crop rejected: no target layer ({layer_id})")
            return False
        if layer.kind is LayerKind.EMPTY or not isinstance(layer.kind, LayerKind):
            logger.warning(f"Crop rejected: layer '{layer.name}' has no raster to crop")
            return False

        self.store.replace_raster(layer.id, cropped)
        if layer.kind in BASE_KINDS:
            purged = self.store.remove_kind(LayerKind.SEGMENT)
            if purged:
                logger.info(f"Crop of '{layer.name}' invalidated {purged} segment layer(s)")
        self.store.select(layer.id)
        logger.info(f"Cropped '{layer.name}' to {cropped.shape[1]}x{cropped.shape[0]}")
        return True

    def crop_layer(self, layer_id, rect: PixelRect) -> bool:
        """Crop the given layer's own raster by ``rect`` and apply the result."""
        layer = self.store.find(layer_id) if layer_id is not None else None
        if layer is None or layer.raster is None:
            logger.warning(f"Crop rejected: layer {layer_id} has no raster")
            return False
        return self.apply_crop(layer.id, crop_raster(layer.raster, rect))
