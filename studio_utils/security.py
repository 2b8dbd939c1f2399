# Input validation and sanitization utilities

import re
from datetime import datetime
from typing import Tuple, Optional
from studio_config.constants import ApiConfig, UploadConfig, UIConfig


def validate_image_upload(content_type: Optional[str], size_bytes: int,
                          max_size_bytes: int = UploadConfig.MAX_FILE_SIZE_BYTES,
                          allowed_types: Tuple[str, ...] = UploadConfig.ALLOWED_CONTENT_TYPES) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded photo before decoding it.

    Args:
        content_type: MIME type reported by the uploader
        size_bytes: File size in bytes

    Returns:
        tuple: (is_valid, error_message)

    Example:
        >>> validate_image_upload("image/png", 1024)
        (True, None)
        >>> validate_image_upload("image/gif", 1024)
        (False, 'Please upload a valid image file (JPEG, PNG, or WebP)')
    """
    if not content_type or content_type.lower() not in allowed_types:
        return False, "Please upload a valid image file (JPEG, PNG, or WebP)"

    if size_bytes > max_size_bytes:
        return False, f"File size must be less than {max_size_bytes // (1024 * 1024)}MB"

    return True, None


def validate_prompt(prompt: Optional[str], max_length: int = ApiConfig.MAX_PROMPT_LENGTH) -> Tuple[bool, Optional[str]]:
    """
    Validate a generation prompt.

    Returns:
        tuple: (is_valid, error_message)
    """
    if not prompt or not prompt.strip():
        return False, "Please enter a prompt"

    if len(prompt) > max_length:
        return False, f"Prompt is too long (max {max_length} characters)"

    return True, None


def validate_pixel_rect(rect, image_width: int, image_height: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a crop rectangle against the image it will be applied to.

    Args:
        rect: Object with x, y, width, height (pixels)
        image_width, image_height: Image dimensions

    Returns:
        tuple: (is_valid, error_message)
    """
    if rect.width <= 0 or rect.height <= 0:
        return False, f"Crop area must have a positive size, got {rect.width}x{rect.height}"

    if rect.x < 0 or rect.y < 0:
        return False, f"Crop origin ({rect.x}, {rect.y}) out of bounds"

    if rect.x + rect.width > image_width or rect.y + rect.height > image_height:
        return False, f"Crop area exceeds image bounds ({image_width}x{image_height})"

    return True, None


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize filename to prevent path traversal and invalid characters.

    Example:
        >>> sanitize_filename("../../etc/passwd")
        'passwd'
        >>> sanitize_filename("my<image>.png")
        'my_image_.png'
    """
    # Remove path components
    filename = filename.split("/")[-1].split("\\")[-1]

    # Remove invalid characters
    filename = re.sub(r'[<>:"/\\|?*]', '_', filename)

    if len(filename) > max_length:
        name, ext = filename.rsplit('.', 1) if '.' in filename else (filename, '')
        filename = name[:max_length-len(ext)-1] + '.' + ext if ext else name[:max_length]

    return filename or "untitled"


def export_filename(mode: str, now: Optional[datetime] = None) -> str:
    """Build the download name for an exported image, e.g. ``studio-edit-2024-05-01T10-20-30-123.png``."""
    now = now or datetime.now()
    stamp = re.sub(r'[:.]', '-', now.isoformat(timespec='milliseconds'))
    return sanitize_filename(f"{UIConfig.EXPORT_PREFIX}-{mode}-{stamp}.png")
