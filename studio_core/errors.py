"""Exception types shared by the layer engine, asset decoding and the API client."""


class StudioError(Exception):
    """Base class for every error raised by Image Studio."""


class LayerNotFoundError(StudioError, KeyError):
    """Raised when an operation names a layer id that is not in the store."""

    def __init__(self, layer_id):
        super().__init__(layer_id)
        self.layer_id = layer_id

    def __str__(self):
        return f"Layer not found: {self.layer_id}"


class AssetDecodeError(StudioError):
    """Raised when an asset reference cannot be resolved into a raster."""


class StudioApiError(StudioError):
    """Raised when the remote edit/generate/segment service fails."""

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
