"""Unit tests for studio_utils/security.py."""

import pytest
from datetime import datetime
from studio_core.crop import PixelRect
from studio_utils.security import (
    validate_image_upload, validate_prompt, validate_pixel_rect, sanitize_filename, export_filename
)


class TestValidateImageUpload:

    @pytest.mark.parametrize("content_type", ["image/png", "image/jpeg", "image/webp", "IMAGE/PNG"])
    def test_accepted_types(self, content_type):
        assert validate_image_upload(content_type, 1024) == (True, None)

    @pytest.mark.parametrize("content_type", ["image/gif", "application/pdf", None, ""])
    def test_rejected_types(self, content_type):
        valid, message = validate_image_upload(content_type, 1024)
        assert not valid
        assert message == "Please upload a valid image file (JPEG, PNG, or WebP)"

    def test_size_limit(self):
        valid, message = validate_image_upload("image/png", 50 * 1024 * 1024 + 1)
        assert not valid
        assert message == "File size must be less than 50MB"
        assert validate_image_upload("image/png", 50 * 1024 * 1024)[0]


class TestValidatePrompt:

    def test_valid(self):
        assert validate_prompt("add a rainbow") == (True, None)

    @pytest.mark.parametrize("prompt", [None, "", "   \n"])
    def test_blank(self, prompt):
        assert validate_prompt(prompt) == (False, "Please enter a prompt")

    def test_too_long(self):
        valid, message = validate_prompt("x" * 2001)
        assert not valid
        assert message == "Prompt is too long (max 2000 characters)"


class TestValidatePixelRect:

    def test_inside(self):
        assert validate_pixel_rect(PixelRect(0, 0, 100, 80), 100, 80) == (True, None)

    @pytest.mark.parametrize("rect", [
        PixelRect(0, 0, 0, 10),
        PixelRect(-1, 0, 10, 10),
        PixelRect(95, 0, 10, 10),
    ])
    def test_rejected(self, rect):
        valid, message = validate_pixel_rect(rect, 100, 80)
        assert not valid
        assert message


class TestFilenames:

    @pytest.mark.parametrize("name,expected", [
        ("../../etc/passwd", "passwd"),
        ("my<image>.png", "my_image_.png"),
        ("C:\\temp\\photo.png", "photo.png"),
        ("", "untitled"),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_filename(name) == expected

    def test_sanitize_truncates_keeping_extension(self):
        result = sanitize_filename("a" * 300 + ".png")
        assert len(result) == 255
        assert result.endswith(".png")

    def test_export_filename(self):
        now = datetime(2024, 5, 1, 10, 20, 30, 123000)
        assert export_filename("edit", now=now) == "studio-edit-2024-05-01T10-20-30-123.png"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
