"""
Normalized shapes of the remote service's responses.

The segmentation backend returns snake_case JSON (``individual_masks``,
``segmented_images``, ``data_url``); older payloads used camelCase. Both are
accepted here so the rest of the engine only sees ``Asset`` and
``SegmentationResult``.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple


@dataclass(frozen=True)
class Asset:
    """Reference to a pixel asset produced by the remote service."""
    url: Optional[str] = None
    data_url: Optional[str] = None
    content_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def source(self):
        """Embedded data URL if present, else the remote URL."""
        return self.data_url or self.url or None

    @classmethod
    def from_dict(cls, data):
        if data is None:
            return None
        if isinstance(data, Asset):
            return data
        if isinstance(data, str):
            if data.startswith('data:'):
                return cls(data_url=data)
            return cls(url=data)
        if not isinstance(data, dict):
            raise ValueError(f"asset must be a dict or string, got {type(data)}")
        return cls(
            url=data.get('url') or None,
            data_url=data.get('data_url') or data.get('dataReference') or data.get('dataUrl') or None,
            content_type=data.get('content_type') or data.get('contentType'),
            width=data.get('width'),
            height=data.get('height'),
        )


def _assets(values):
    if not values:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValueError(f"asset list expected, got {type(values)}")
    # Keep positions: a null entry still occupies its index
    return [Asset.from_dict(value) if value is not None else None for value in values]


@dataclass(frozen=True)
class SegmentationResult:
    combined_mask: Optional[Asset] = None
    individual_masks: List[Optional[Asset]] = field(default_factory=list)
    segmented_images: List[Optional[Asset]] = field(default_factory=list)

    @classmethod
    def from_response(cls, data):
        data = data or {}
        return cls(
            combined_mask=Asset.from_dict(data.get('combined_mask') or data.get('combinedMask')),
            individual_masks=_assets(data.get('individual_masks') or data.get('individualMasks')),
            segmented_images=_assets(data.get('segmented_images') or data.get('segmentedImages')),
        )

    @property
    def has_segmented_images(self):
        return len(self.segmented_images) > 0

    def import_plan(self) -> Tuple[list, bool, list]:
        """
        Decide what to import.

        Returns:
            ``(items, using_precut_images, masks)``. Pre-cut object images
            win when present, with the individual masks kept alongside for
            metadata; otherwise the individual masks are the items.
        """
        if self.has_segmented_images:
            return list(self.segmented_images), True, list(self.individual_masks)
        return list(self.individual_masks), False, list(self.individual_masks)


def extract_image_url(response):
    """Return the first result image URL of an edit/generate response, or None."""
    if not response:
        return None
    images = response.get('images') or []
    if images:
        first = images[0] or {}
        if first.get('url'):
            return first['url']
    image = response.get('image') or {}
    return image.get('url') or None
