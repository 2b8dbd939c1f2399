"""
Configuration package for Image Studio.
Centralizes all tunable parameters and constants.
"""

from .constants import (
    MaskConfig,
    SegmentationConfig,
    ApiConfig,
    UploadConfig,
    UIConfig,
    CropConfig,
    QUICK_EDITS,
    FILTER_PRESETS,
)

__all__ = [
    'MaskConfig',
    'SegmentationConfig',
    'ApiConfig',
    'UploadConfig',
    'UIConfig',
    'CropConfig',
    'QUICK_EDITS',
    'FILTER_PRESETS',
]
