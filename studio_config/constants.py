"""
Configuration constants for Image Studio.
All tunable parameters and magic numbers are defined here with explanations.
"""

import os


class MaskConfig:
    """Configuration for mask analysis and compositing."""

    # --- Encoding Detection ---
    # Number of bytes of the flattened RGBA buffer inspected when deciding
    # between alpha-channel and luminance masks (1000 bytes = 250 pixels).
    # Only a prefix is sampled; masks whose variation sits outside it are
    # classified from the prefix alone.
    ENCODING_SAMPLE_BYTES = 1000

    # Alpha value treated as fully opaque
    OPAQUE_ALPHA = 255

    # --- Bounding Box ---
    # Pixels with alpha strictly above this count as foreground (0-255 scale)
    BBOX_ALPHA_THRESHOLD = 25

    # --- Diagnostics ---
    # Buckets used when logging the coverage of a composited preview
    REPORT_OPAQUE_MIN = 200
    REPORT_SEMI_MIN = 50


class SegmentationConfig:
    """Configuration for importing auto-segmentation results as layers."""

    # Worker threads used to decode/compose segment items in parallel
    IMPORT_MAX_WORKERS = 4

    # Name of the background layer created for a segmentation run
    BACKGROUND_LAYER_NAME = "Background"

    # Segment layers are named by their 1-based position in the result
    SEGMENT_NAME_TEMPLATE = "Segment {index}"


class ApiConfig:
    """Configuration for the remote edit/generate/segment service."""

    # Base URL of the backend API (no trailing slash)
    BASE_URL = os.environ.get("STUDIO_API_BASE", "http://localhost:3001/api").rstrip("/")

    # Request timeout in seconds; generation calls can queue for a while
    TIMEOUT_SECONDS = float(os.environ.get("STUDIO_API_TIMEOUT", "120"))

    # Timeout for plain asset downloads (masks, result images)
    ASSET_TIMEOUT_SECONDS = 30.0

    # Available generation models
    MODELS = {
        "nano": "Nano Banana",
        "pro": "Nano Banana Pro",
    }
    DEFAULT_MODEL = "nano"

    # Longest prompt accepted before calling the service
    MAX_PROMPT_LENGTH = 2000


class UploadConfig:
    """Configuration for validating imported photos."""

    MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50MB

    ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/jpg", "image/webp")

    # Extensions accepted by the uploader widget
    ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "webp")


class UIConfig:
    """Configuration for the Streamlit page."""

    # Display width for the canvas preview (pixels)
    DEFAULT_CANVAS_WIDTH = 800

    # Width of layer thumbnails in the layer list
    THUMBNAIL_WIDTH = 72

    # Filename prefix for exported images
    EXPORT_PREFIX = "studio"

    # Outline drawn around the selected segment (RGBA)
    SELECTION_OUTLINE_COLOR = (0, 200, 255, 255)
    SELECTION_OUTLINE_THICKNESS = 2


class CropConfig:
    """Configuration for the crop tool."""

    # label -> width/height ratio; None leaves the rectangle unconstrained
    ASPECT_PRESETS = (
        ("Free", None),
        ("1:1", 1.0),
        ("4:5", 4 / 5),
        ("3:2", 3 / 2),
        ("16:9", 16 / 9),
    )

    DEFAULT_ASPECT = "3:2"


# --- Prompt Presets ---
# label, prompt, optional negative prompt
QUICK_EDITS = (
    {
        "label": "Clean Background",
        "description": "Isolate your subject on a soft studio gradient.",
        "prompt": "Isolate the main subject, remove distractions, replace background with a soft neutral "
                  "gradient backdrop, keep natural shadows, commercial studio polish",
        "negative_prompt": "busy background, clutter, extra hands, text, watermark",
    },
    {
        "label": "Product Pop",
        "description": "Boost contrast, reflections, and clarity.",
        "prompt": "Create a premium e-commerce hero shot, punchy contrast, sharpened edges, controlled "
                  "reflections, glossy highlights, gradient sweep backdrop",
        "negative_prompt": "noise, watermark, text overlay, harsh artifacts",
    },
    {
        "label": "Portrait Glow",
        "description": "Retouch skin, add warm rim lighting.",
        "prompt": "Subtle portrait retouch, even skin tone, soften blemishes, add warm golden rim light, "
                  "cinematic bokeh background, high-end magazine aesthetic",
        "negative_prompt": "over-smoothing, plastic skin, distortion, vignette",
    },
    {
        "label": "Cinematic Mood",
        "description": "Teal & amber film-grade look.",
        "prompt": "Apply dramatic teal and amber cinematic grade, lifted blacks, gentle bloom, volumetric "
                  "atmosphere, film grain, widescreen energy",
        "negative_prompt": "washed out, oversaturated, text overlay",
    },
)

FILTER_PRESETS = (
    {
        "label": "Vintage Film",
        "category": "Film",
        "prompt": "Kodak Portra 400 film, warm amber tones, subtle grain texture, vintage color grading, "
                  "authentic film imperfections, cinematic look",
    },
    {
        "label": "Black & White",
        "category": "Monochrome",
        "prompt": "High contrast black and white, dramatic shadows, rich textures, classic photography, "
                  "silver gelatin print aesthetic, moody atmosphere",
    },
    {
        "label": "Golden Hour",
        "category": "Lighting",
        "prompt": "Golden hour lighting, warm sunset tones, long dramatic shadows, magical atmosphere, "
                  "romantic golden glow, evening light",
    },
    {
        "label": "Moody Noir",
        "category": "Noir",
        "prompt": "Film noir style, high contrast, deep shadows, dramatic lighting, black and white with "
                  "blue tint, mysterious atmosphere",
    },
)


# --- Export Convenience Constants ---
BBOX_THRESHOLD = MaskConfig.BBOX_ALPHA_THRESHOLD
MAX_UPLOAD_BYTES = UploadConfig.MAX_FILE_SIZE_BYTES
DEFAULT_MODEL = ApiConfig.DEFAULT_MODEL
