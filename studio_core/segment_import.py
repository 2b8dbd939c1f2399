"""
Turn a batch of segmentation results into segment layers.

Each item is either a mask that still has to be composited against the base
raster, or a pre-cut object image that already is the final preview. Items are
decoded and composited in parallel, collected by their original position, and
committed to the layer store in a single batch so the stack is never observed
half-built.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional
from studio_config.constants import SegmentationConfig
from studio_core.layers import Layer, LayerKind, LayerStore, SegmentMetadata, new_layer_id
from studio_core.masking import compose_masked_preview, extract_bounding_box
from studio_core.responses import Asset
from studio_utils.encoding import decode_asset
from studio_utils.image_processing import ensure_rgba
from studio_utils.logger import get_logger, log_performance

logger = get_logger('segment_import')


@dataclass
class ImportReport:
    """Outcome of one segmentation import."""
    created: List[Layer] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    background: Optional[Layer] = None
    rejected: bool = False
    cleared: bool = False

    @property
    def no_segments(self):
        """True when items were supplied but none produced a layer."""
        return not self.rejected and not self.cleared and not self.created


class SegmentImporter:
    def __init__(self, store: LayerStore, decoder=decode_asset, max_workers=SegmentationConfig.IMPORT_MAX_WORKERS):
        """
        Args:
            store: Layer store the batch is committed to
            decoder: Callable resolving an ``Asset`` into an RGBA raster
            max_workers: Threads used for per-item decode/compose work
        """
        self.store = store
        self.decoder = decoder
        self.max_workers = max(1, int(max_workers))

    @log_performance
    def import_segments(self, base_raster, items, using_precut_images=False, masks=None) -> ImportReport:
        """
        Replace the current segment layers with layers built from ``items``.

        Args:
            base_raster: Raster the segmentation was computed against
            items: Masks, or pre-cut object images when ``using_precut_images``
            using_precut_images: Items are final previews, not masks
            masks: Optional list parallel to ``items`` stored as each layer's
                mask reference

        Returns:
            ImportReport describing what was committed
        """
        report = ImportReport()
        if base_raster is None:
            logger.warning("Segmentation import requested without a base raster; ignoring")
            report.rejected = True
            return report

        items = list(items or [])
        masks = list(masks or [])

        if not items:
            self.store.remove_kind(LayerKind.SEGMENT)
            report.cleared = True
            logger.info("Segmentation returned no items; cleared segment layers")
            return report

        base_rgba = ensure_rgba(base_raster)

        self.store.remove_kind(LayerKind.SEGMENT)
        report.background = self.store.register(
            SegmentationConfig.BACKGROUND_LAYER_NAME,
            LayerKind.SOURCE,
            base_rgba,
            replace_kind=LayerKind.SOURCE,
            auto_select=False,
        )

        slots: List[Optional[Layer]] = [None] * len(items)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            futures = {}
            for index, item in enumerate(items):
                mask_ref = masks[index] if index < len(masks) else None
                futures[index] = executor.submit(
                    self._build_layer, index, item, base_rgba, using_precut_images, mask_ref
                )
            for index, future in futures.items():
                try:
                    slots[index] = future.result()
                except Exception as e:
                    logger.error(f"Failed to create segment layer {index + 1}: {e}", exc_info=True)

        for index, layer in enumerate(slots):
            if layer is None:
                report.skipped.append(index)
            else:
                report.created.append(layer)

        if report.created:
            self.store.add_batch(report.created, select_first=True)
            logger.info(f"Added {len(report.created)} segment layers in one batch "
                        f"({len(report.skipped)} skipped)")
        else:
            logger.warning("No segment layers were created")

        return report

    def _build_layer(self, index, item, base_rgba, using_precut_images, mask_ref):
        """Build the segment layer for ``items[index]``; None if it has no usable asset."""
        asset = Asset.from_dict(item)
        if asset is None or not asset.source:
            logger.warning(f"Segment {index + 1}: no source found, skipping")
            return None

        raster = self.decoder(asset)
        if using_precut_images:
            preview = ensure_rgba(raster)
            bounding_box = extract_bounding_box(preview)
        else:
            preview = compose_masked_preview(base_rgba, raster)
            bounding_box = extract_bounding_box(raster)

        mask_asset = Asset.from_dict(mask_ref) if mask_ref is not None else None
        if mask_asset is None or not mask_asset.source:
            mask_asset = asset

        logger.debug(f"Segment {index + 1}: preview {preview.shape[1]}x{preview.shape[0]}, "
                     f"bounding box {bounding_box}")
        return Layer(
            name=SegmentationConfig.SEGMENT_NAME_TEMPLATE.format(index=index + 1),
            kind=LayerKind.SEGMENT,
            raster=preview,
            metadata=SegmentMetadata(mask_reference=mask_asset, bounding_box=bounding_box),
            id=new_layer_id('segment'),
        )
