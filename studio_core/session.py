"""
Editing session: one photo, its layer stack, and the actions a user runs on it.

The session owns its ``LayerStore`` (there is no module-level state), so the
whole engine can be driven from tests or from the Streamlit page alike. Every
action either completes or leaves the store as it was and records a
user-facing message in ``last_error``.
"""

from typing import Optional
from studio_config.constants import ApiConfig
from studio_core.crop import CropEngine, PixelRect, crop_raster, choose_crop_target
from studio_core.errors import StudioError, StudioApiError, LayerNotFoundError
from studio_core.layers import LayerKind, LayerStore
from studio_core.responses import SegmentationResult, extract_image_url
from studio_core.segment_import import SegmentImporter
from studio_utils.encoding import decode_asset, decode_image_bytes, raster_to_png_bytes
from studio_utils.image_processing import ensure_rgba, flatten_layers
from studio_utils.logger import get_logger, log_exceptions
from studio_utils.security import validate_prompt, validate_pixel_rect

logger = get_logger('session')


class EditingSession:
    def __init__(self, client=None, decoder=decode_asset, store: Optional[LayerStore] = None,
                 model=ApiConfig.DEFAULT_MODEL):
        """
        Args:
            client: ``StudioApiClient`` (or compatible) for remote calls
            decoder: Callable resolving an asset reference into a raster
            store: Existing layer store; a new one is created by default
            model: Default generation model id
        """
        self.client = client
        self.decoder = decoder
        self.store = store or LayerStore()
        self.model = model
        self.importer = SegmentImporter(self.store, decoder=decoder)
        self.crop_engine = CropEngine(self.store)

        self.photo = None           # imported source raster
        self.edited = None          # latest AI result raster
        self.ai_layer_count = 0
        self.adjustment_count = 1
        self.api_configured = True
        self.last_error: Optional[str] = None
        self.last_warning: Optional[str] = None
        self._history = ["Session started"]

    # --- Read-only views ---

    @property
    def history(self):
        return tuple(self._history)

    @property
    def layers(self):
        return self.store.layers

    @property
    def has_editable_image(self):
        return self.photo is not None or self.edited is not None

    @log_exceptions
    def composite(self):
        """Flatten the visible stack into one RGBA preview (None if empty)."""
        return flatten_layers(self.store.layers)

    def selection_outline(self, width, height):
        """
        Pixel rectangle ``(x, y, w, h)`` of the selected segment on a
        ``width`` x ``height`` canvas, or None when no segment is selected.
        """
        layer = self.store.active_layer
        if layer is None or layer.kind is not LayerKind.SEGMENT or layer.bounding_box is None:
            return None
        return layer.bounding_box.to_pixels(width, height)

    # --- Internals ---

    def _log(self, entry):
        self._history.append(entry)

    def _fail(self, message):
        self.last_error = message
        logger.warning(message)
        return None

    def _begin(self):
        self.last_error = None
        self.last_warning = None

    def _require_client(self):
        if self.client is None:
            raise StudioApiError("Backend client not configured")
        if not self.api_configured:
            raise StudioApiError("API key not configured. Please check backend configuration.")

    def _fetch_result(self, response):
        url = extract_image_url(response)
        if not url:
            raise StudioApiError("No image in response. Please try again.")
        return ensure_rgba(self.decoder(url))

    def _run_remote(self, action, call):
        """Run ``call`` and map expected failures to ``last_error``."""
        try:
            return call()
        except (StudioError, ValueError) as e:
            logger.error(f"{action} failed: {e}")
            self.last_error = str(e) or f"{action} failed"
            return None

    # --- Import ---

    def import_photo(self, raster, name="Source Asset"):
        """Start over from a new photo; replaces the current source layer."""
        self._begin()
        try:
            raster = ensure_rgba(raster)
        except ValueError as e:
            return self._fail(f"Failed to read image file: {e}")

        # A new base invalidates every segment cut from the old one
        self.store.remove_kind(LayerKind.SEGMENT)
        layer = self.store.register(name, LayerKind.SOURCE, raster, replace_kind=LayerKind.SOURCE)
        self.photo = raster
        self.edited = None
        self.ai_layer_count = 0
        self._log("Image imported")
        return layer

    def import_photo_bytes(self, payload, name="Source Asset"):
        self._begin()
        try:
            raster = decode_image_bytes(payload)
        except StudioError as e:
            return self._fail(f"Failed to read image file: {e}")
        return self.import_photo(raster, name=name)

    def clear_image(self):
        self.photo = None
        self.edited = None
        self.last_error = None

    def add_adjustment_layer(self):
        layer = self.store.register(f"Adjustment {self.adjustment_count}", LayerKind.EMPTY)
        self.adjustment_count += 1
        return layer

    # --- Remote edits ---

    def check_health(self):
        """Refresh ``api_configured`` from the backend health endpoint."""
        self._begin()
        if self.client is None:
            return self._fail("Backend client not configured")
        health = self._run_remote("Health check", self.client.check_health)
        if health is None:
            self.last_error = "Unable to connect to backend server"
            return None
        self.api_configured = bool(health.get('apiConfigured', False))
        if not self.api_configured:
            self.last_error = "API key not configured. Please set FAL_API_KEY in backend/.env"
        return health

    def _register_ai(self, raster, name):
        layer = self.store.register(name, LayerKind.AI, raster)
        self.edited = raster
        self.ai_layer_count += 1
        return layer

    def apply_edit(self, prompt, negative_prompt=None, model=None):
        """Edit the imported photo with ``prompt``; adds an ``AI Output n`` layer."""
        self._begin()
        valid, message = validate_prompt(prompt)
        if not valid:
            return self._fail(message)
        if self.photo is None:
            return self._fail("Please upload an image first")

        def call():
            self._require_client()
            response = self.client.edit_image(
                self.photo, prompt.strip(),
                negative_prompt=(negative_prompt or '').strip() or None,
                model=model or self.model,
            )
            return self._fetch_result(response)

        raster = self._run_remote("Image edit", call)
        if raster is None:
            return None
        self._log("AI edit applied")
        return self._register_ai(raster, f"AI Output {self.ai_layer_count + 1}")

    def generate(self, prompt, negative_prompt=None, width=None, height=None, model=None):
        """Generate a new image from text; adds a ``Generation n`` layer."""
        self._begin()
        valid, message = validate_prompt(prompt)
        if not valid:
            return self._fail(message)

        def call():
            self._require_client()
            response = self.client.generate_image(
                prompt.strip(),
                negative_prompt=(negative_prompt or '').strip() or None,
                width=width, height=height,
                model=model or self.model,
            )
            return self._fetch_result(response)

        raster = self._run_remote("Generation", call)
        if raster is None:
            return None
        self._log("Image generated")
        return self._register_ai(raster, f"Generation {self.ai_layer_count + 1}")

    def apply_quick_edit(self, preset, model=None):
        """Run a quick-edit preset on the latest result (or the photo)."""
        self._begin()
        base = self.edited if self.edited is not None else self.photo
        if base is None:
            return self._fail("Please upload an image first")

        def call():
            self._require_client()
            response = self.client.edit_image(
                base, preset['prompt'].strip(),
                negative_prompt=(preset.get('negative_prompt') or '').strip() or None,
                model=model or self.model,
            )
            return self._fetch_result(response)

        raster = self._run_remote("Quick edit", call)
        if raster is None:
            return None
        self._log(f"Quick edit: {preset['label']}")
        return self._register_ai(raster, f"Quick: {preset['label']}")

    def apply_filter(self, preset, model=None):
        """Apply a filter preset to the imported photo."""
        self._begin()
        if self.photo is None:
            return self._fail("Please upload an image first")
        prompt = preset['prompt'].strip()

        def call():
            self._require_client()
            response = self.client.edit_image(self.photo, prompt, model=model or self.model)
            return self._fetch_result(response)

        raster = self._run_remote("Filter", call)
        if raster is None:
            return None
        self._log(f"Filter applied: {preset['label']}")
        return self._register_ai(raster, f"Filter: {prompt[:15]}...")

    # --- Segmentation ---

    def auto_segment(self):
        """
        Segment the current photo and import the objects as segment layers.

        Returns:
            ImportReport, or None if the action failed before importing
        """
        self._begin()
        base = self.photo if self.photo is not None else self.edited
        if base is None:
            return self._fail("Please upload an image first")

        def call():
            self._require_client()
            return SegmentationResult.from_response(self.client.segment_image(base))

        result = self._run_remote("Segmentation", call)
        if result is None:
            return None

        items, using_precut, masks = result.import_plan()
        logger.info(f"Using {'segmented_images' if using_precut else 'individual_masks'}: {len(items)} item(s)")
        report = self.importer.import_segments(base, items, using_precut, masks)
        if report.no_segments:
            self.last_warning = "Segmentation produced no usable segments"
        self._log(f"Auto segmentation ({len(report.created)} segments)")
        return report

    # --- Crop ---

    def crop_target(self):
        return choose_crop_target(self.store)

    def crop(self, rect: PixelRect, layer_id=None):
        """
        Crop a layer and write the result back into the stack.

        Args:
            rect: Rectangle in the target raster's pixel coordinates
            layer_id: Explicit target; defaults to ``crop_target()``

        Returns:
            The cropped layer, or None if the crop was rejected
        """
        self._begin()
        target = self.store.find(layer_id) if layer_id is not None else self.crop_target()
        if target is None or target.raster is None:
            return self._fail("Nothing to crop")

        valid, message = validate_pixel_rect(rect, *target.size)
        if not valid:
            return self._fail(f"Failed to crop image: {message}")

        try:
            cropped = crop_raster(target.raster, rect)
        except ValueError as e:
            return self._fail(f"Failed to crop image: {e}")

        if not self.crop_engine.apply_crop(target.id, cropped):
            return self._fail("Failed to crop image. Please try again.")

        if target.kind is LayerKind.SOURCE:
            self.photo = cropped
        elif target.kind is LayerKind.AI:
            self.edited = cropped
        self._log(f"Cropped {target.name}")
        return self.store.get(target.id)

    # --- Layer panel actions ---

    def _layer_action(self, func, layer_id, *args):
        try:
            func(layer_id, *args)
        except LayerNotFoundError as e:
            self._fail(str(e))
            return False
        return True

    def select(self, layer_id):
        return self._layer_action(self.store.select, layer_id)

    def toggle_visibility(self, layer_id):
        return self._layer_action(self.store.toggle_visibility, layer_id)

    def solo(self, layer_id):
        return self._layer_action(self.store.solo, layer_id)

    def move_layer(self, layer_id, new_index):
        return self._layer_action(self.store.move, layer_id, new_index)

    def remove_layer(self, layer_id):
        layer = self.store.find(layer_id)
        if not self._layer_action(self.store.remove, layer_id):
            return False
        if layer.kind is LayerKind.SOURCE and layer.raster is self.photo:
            self.photo = None
        elif layer.kind is LayerKind.AI and layer.raster is self.edited:
            nxt = self.store.first_of_kind(LayerKind.AI)
            self.edited = nxt.raster if nxt else None
        return True

    # --- Export ---

    @log_exceptions
    def export_png(self):
        """PNG bytes of the latest result (or the photo), or None if there is nothing."""
        raster = self.edited if self.edited is not None else self.photo
        if raster is None:
            return None
        return raster_to_png_bytes(raster)
