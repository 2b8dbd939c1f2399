"""
Layer data model and the ordered layer store.

The store keeps layers most-recent-first and tracks a single selected id.
Every mutation leaves the selection pointing at an existing layer or at
nothing, and segment layers never outlive the base raster they were cut from
(callers purge them through ``remove_kind``).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Tuple
import numpy as np
from studio_core.errors import LayerNotFoundError
from studio_core.masking import BoundingBox
from studio_utils.logger import get_logger

logger = get_logger('layers')


class LayerKind(Enum):
    SOURCE = "source"
    AI = "ai"
    EMPTY = "empty"
    SEGMENT = "segment"


@dataclass(frozen=True)
class SegmentMetadata:
    """Spatial metadata carried only by segment layers."""
    mask_reference: object = None
    bounding_box: Optional[BoundingBox] = None


@dataclass(eq=False)
class Layer:
    name: str
    kind: LayerKind
    raster: Optional[np.ndarray] = None
    visible: bool = True
    metadata: Optional[SegmentMetadata] = None
    id: str = field(default_factory=lambda: new_layer_id())
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not isinstance(self.kind, LayerKind):
            self.kind = LayerKind(self.kind)
        if self.kind is LayerKind.EMPTY and self.raster is not None:
            raise ValueError("empty layers do not carry a raster")
        if self.metadata is not None and self.kind is not LayerKind.SEGMENT:
            raise ValueError(f"{self.kind.value} layers do not carry segment metadata")

    @property
    def timestamp(self):
        """Creation time formatted for display."""
        return self.created_at.strftime('%H:%M:%S')

    @property
    def bounding_box(self):
        return self.metadata.bounding_box if self.metadata else None

    @property
    def size(self):
        """``(width, height)`` of the raster, or None."""
        if self.raster is None:
            return None
        return self.raster.shape[1], self.raster.shape[0]


def new_layer_id(prefix='layer'):
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class LayerStore:
    """Ordered layer collection (most recent first) with selection tracking."""

    def __init__(self):
        self._layers: List[Layer] = []
        self._selected_id: Optional[str] = None

    # --- Queries ---

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self._layers)

    @property
    def selected_id(self):
        return self._selected_id

    def __len__(self):
        return len(self._layers)

    def __iter__(self):
        return iter(tuple(self._layers))

    def __contains__(self, layer_id):
        return self._index_of(layer_id) is not None

    def get(self, layer_id) -> Layer:
        index = self._index_of(layer_id)
        if index is None:
            raise LayerNotFoundError(layer_id)
        return self._layers[index]

    def find(self, layer_id) -> Optional[Layer]:
        index = self._index_of(layer_id)
        return None if index is None else self._layers[index]

    def of_kind(self, kind) -> List[Layer]:
        kind = LayerKind(kind)
        return [layer for layer in self._layers if layer.kind is kind]

    def first_of_kind(self, kind) -> Optional[Layer]:
        kind = LayerKind(kind)
        return next((layer for layer in self._layers if layer.kind is kind), None)

    def visible_layers(self) -> List[Layer]:
        return [layer for layer in self._layers if layer.visible]

    @property
    def active_layer(self) -> Optional[Layer]:
        """The selected layer, or the first layer when nothing is selected."""
        if self._selected_id is not None:
            layer = self.find(self._selected_id)
            if layer is not None:
                return layer
        return self._layers[0] if self._layers else None

    @property
    def base_layer(self) -> Optional[Layer]:
        """Most recent AI layer, else the source layer."""
        return self.first_of_kind(LayerKind.AI) or self.first_of_kind(LayerKind.SOURCE)

    # --- Insertion ---

    def register(self, name, kind, raster=None, *, replace_kind=None, auto_select=True,
                 visible=True, metadata=None) -> Layer:
        """
        Create a layer and prepend it.

        Args:
            replace_kind: If given, every existing layer of this kind is
                removed before the new layer is inserted
            auto_select: Select the new layer (default True)
        """
        layer = Layer(name=name, kind=kind, raster=raster, visible=visible, metadata=metadata)
        if replace_kind is not None:
            removed = self._drop(lambda entry: entry.kind is LayerKind(replace_kind))
            if removed:
                logger.debug(f"Replaced {removed} {LayerKind(replace_kind).value} layer(s)")
        self._layers.insert(0, layer)
        if auto_select:
            self._selected_id = layer.id
        self._repair_selection()
        logger.info(f"Registered layer '{layer.name}' ({layer.kind.value})")
        return layer

    def add_batch(self, layers, select_first=True):
        """Prepend ``layers`` as one group, keeping their order and the existing order."""
        layers = list(layers)
        if not layers:
            return
        seen = {layer.id for layer in self._layers}
        for layer in layers:
            if layer.id in seen:
                raise ValueError(f"duplicate layer id: {layer.id}")
            seen.add(layer.id)
        self._layers[0:0] = layers
        if select_first:
            self._selected_id = layers[0].id
        self._repair_selection()
        logger.info(f"Added {len(layers)} layers in one batch")

    # --- Removal ---

    def remove(self, layer_id):
        index = self._index_of(layer_id)
        if index is None:
            raise LayerNotFoundError(layer_id)
        removed = self._layers.pop(index)
        self._repair_selection()
        logger.info(f"Removed layer '{removed.name}'")
        return removed

    def remove_kind(self, kind):
        """Remove every layer of ``kind``; returns how many were removed."""
        kind = LayerKind(kind)
        count = self._drop(lambda entry: entry.kind is kind)
        self._repair_selection()
        if count:
            logger.info(f"Purged {count} {kind.value} layer(s)")
        return count

    # --- Selection & visibility ---

    def select(self, layer_id):
        if self._index_of(layer_id) is None:
            raise LayerNotFoundError(layer_id)
        self._selected_id = layer_id

    def toggle_visibility(self, layer_id):
        layer = self.get(layer_id)
        layer.visible = not layer.visible
        return layer.visible

    def solo(self, layer_id):
        """Show only ``layer_id`` among segment layers; other kinds keep their state."""
        target = self.get(layer_id)
        for layer in self._layers:
            if layer.kind is LayerKind.SEGMENT:
                layer.visible = layer.id == target.id

    # --- Mutation ---

    def move(self, layer_id, new_index):
        """Move a layer to ``new_index`` (clamped to the valid range)."""
        index = self._index_of(layer_id)
        if index is None:
            raise LayerNotFoundError(layer_id)
        layer = self._layers.pop(index)
        new_index = max(0, min(int(new_index), len(self._layers)))
        self._layers.insert(new_index, layer)
        return new_index

    def replace_raster(self, layer_id, raster):
        """Swap a layer's raster in place, keeping its id and refreshing its timestamp."""
        layer = self.get(layer_id)
        if layer.kind is LayerKind.EMPTY:
            raise ValueError("empty layers do not carry a raster")
        layer.raster = raster
        layer.created_at = datetime.now()
        return layer

    # --- Internals ---

    def _index_of(self, layer_id):
        for i, layer in enumerate(self._layers):
            if layer.id == layer_id:
                return i
        return None

    def _drop(self, predicate):
        before = len(self._layers)
        self._layers = [layer for layer in self._layers if not predicate(layer)]
        return before - len(self._layers)

    def _repair_selection(self):
        if self._selected_id is not None and self._index_of(self._selected_id) is not None:
            return
        self._selected_id = self._layers[0].id if self._layers else None
