import base64
import binascii
from io import BytesIO
import numpy as np
import requests
from PIL import Image, UnidentifiedImageError
from studio_config.constants import ApiConfig
from studio_core.errors import AssetDecodeError
from studio_utils.logger import get_logger

logger = get_logger('encoding')


def decode_image_bytes(payload):
    """Decode PNG/JPEG/WebP bytes into an (H, W, 4) uint8 RGBA array."""
    try:
        with Image.open(BytesIO(payload)) as img:
            img.load()
            if img.mode != "RGBA":
                img = img.convert("RGBA")
            return np.array(img, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise AssetDecodeError(f"Unable to decode image data: {e}") from e


def data_url_to_bytes(data_url):
    """Return the raw bytes embedded in a ``data:`` URL."""
    header, sep, body = data_url.partition(',')
    if not sep or not header.startswith('data:'):
        raise AssetDecodeError("Malformed data URL")
    try:
        if header.endswith(';base64'):
            return base64.b64decode(body, validate=False)
        return body.encode('latin-1')
    except (binascii.Error, ValueError) as e:
        raise AssetDecodeError(f"Invalid base64 payload: {e}") from e


def fetch_bytes(url, session=None, timeout=ApiConfig.ASSET_TIMEOUT_SECONDS):
    http = session or requests
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise AssetDecodeError(f"Failed to fetch asset {url[:80]}: {e}") from e
    return response.content


def decode_asset(source, session=None):
    """
    Resolve an asset reference into an RGBA raster.

    Args:
        source: ``data:`` URL, http(s) URL, or an object with a ``source``
            attribute (e.g. ``Asset``)
        session: Optional ``requests.Session`` used for remote URLs

    Raises:
        AssetDecodeError: If the reference is missing or cannot be decoded
    """
    if source is not None and not isinstance(source, str):
        source = getattr(source, 'source', None)
    if not source:
        raise AssetDecodeError("Asset has no url or data reference")

    if source.startswith('data:'):
        payload = data_url_to_bytes(source)
    elif source.startswith(('http://', 'https://')):
        payload = fetch_bytes(source, session=session)
    else:
        raise AssetDecodeError(f"Unsupported asset reference: {source[:60]}")

    raster = decode_image_bytes(payload)
    logger.debug(f"Decoded asset {source[:60]}... -> {raster.shape[1]}x{raster.shape[0]}")
    return raster


def raster_to_png_bytes(raster):
    """Encode a raster as PNG (alpha preserved)."""
    if isinstance(raster, np.ndarray):
        img = Image.fromarray(raster)
    else:
        img = raster
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def raster_to_data_url(raster):
    return f"data:image/png;base64,{base64.b64encode(raster_to_png_bytes(raster)).decode()}"
