import cv2
import numpy as np
from studio_config.constants import UIConfig


def ensure_rgba(image):
    """
    Normalize an image array to an (H, W, 4) uint8 RGBA raster.

    Grayscale (H, W) and (H, W, 1) inputs are replicated across RGB,
    RGB inputs get a fully opaque alpha channel. RGBA input is returned as-is.

    Raises:
        ValueError: If the array cannot be interpreted as an image
    """
    if not isinstance(image, np.ndarray):
        raise ValueError(f"image must be numpy array, got {type(image)}")

    if image.size == 0:
        raise ValueError("image is empty")

    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)

    if image.ndim != 3:
        raise ValueError(f"image must be 2D or 3D, got shape {image.shape}")

    if image.shape[2] == 4:
        return image
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2RGBA)

    raise ValueError(f"image must have 1, 3 or 4 channels, got {image.shape[2]}")


def resize_to(image, width, height, interpolation=cv2.INTER_LINEAR):
    """Resample ``image`` to exactly ``width`` x ``height``; no copy when already that size."""
    if image.shape[1] == width and image.shape[0] == height:
        return image
    return cv2.resize(image, (width, height), interpolation=interpolation)


def flatten_layers(layers, background=None):
    """
    Composite visible layer rasters into a single RGBA preview.

    ``layers`` are most-recent-first, so they are painted in reverse order
    (oldest at the bottom). Each raster is stretched to the canvas size,
    which is taken from the bottom-most raster when no background is given.

    Returns:
        (H, W, 4) uint8 array, or None if there is nothing to draw
    """
    rasters = [layer.raster for layer in reversed(list(layers))
               if layer.visible and layer.raster is not None]
    if background is not None:
        rasters.insert(0, ensure_rgba(background))
    if not rasters:
        return None

    h, w = rasters[0].shape[:2]
    result = np.zeros((h, w, 4), dtype=np.float32)

    for raster in rasters:
        src = resize_to(ensure_rgba(raster), w, h).astype(np.float32) / 255.0
        src_a = src[:, :, 3:4]
        dst_a = result[:, :, 3:4]
        out_a = src_a + dst_a * (1.0 - src_a)
        # Straight-alpha "over" operator
        with np.errstate(divide='ignore', invalid='ignore'):
            rgb = (src[:, :, :3] * src_a + result[:, :, :3] * dst_a * (1.0 - src_a)) / out_a
        result[:, :, :3] = np.nan_to_num(rgb)
        result[:, :, 3:4] = out_a

    return np.clip(result * 255.0 + 0.5, 0, 255).astype(np.uint8)


def resize_for_display(image, max_width=UIConfig.DEFAULT_CANVAS_WIDTH):
    """
    Downscale an image for display, preserving aspect ratio.

    Only resizes if the image is wider than ``max_width``. Uses INTER_AREA,
    which is best for downscaling.
    """
    h, w = image.shape[:2]
    if w <= max_width:
        return image
    new_h = max(1, int(h * (max_width / w)))
    return cv2.resize(image, (max_width, new_h), interpolation=cv2.INTER_AREA)


def draw_outline(image, rect, color=UIConfig.SELECTION_OUTLINE_COLOR,
                 thickness=UIConfig.SELECTION_OUTLINE_THICKNESS):
    """Return a copy of ``image`` with the ``(x, y, w, h)`` rectangle outlined."""
    x, y, w, h = rect
    output = ensure_rgba(image).copy()
    if w <= 0 or h <= 0:
        return output
    cv2.rectangle(output, (x, y), (x + w - 1, y + h - 1), color, thickness)
    return output
