"""
Shared image processing utilities for frame classification.

Provides consistent frame downscaling and encoding for every vision backend.
"""

import base64
import io
from PIL import Image, UnidentifiedImageError

from trailcam_sorter.errors import MediaError


class ImageProcessor:
    """Handles frame loading, downscaling, and encoding for VLM processing."""

    @staticmethod
    def load_image_bytes(image_path: str) -> bytes:
        """Read a still image from disk as a single frame."""
        try:
            with open(image_path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise MediaError(f"Failed to read image {image_path}: {e}") from e

    @staticmethod
    def downscale(image_data: bytes, max_width: int) -> bytes:
        """
        Shrink a frame to at most max_width pixels wide and return it as JPEG bytes.

        Args:
            image_data: Encoded image (JPEG, PNG, or anything Pillow can decode)
            max_width: Maximum width in pixels; height follows the aspect ratio

        Returns:
            JPEG image as bytes. JPEG input that already fits is returned
            unchanged; other formats that fit are re-encoded as JPEG.

        Raises:
            MediaError: If the image cannot be decoded or has no pixels
        """
        try:
            with Image.open(io.BytesIO(image_data)) as img:
                width, height = img.size
                if width < 1 or height < 1:
                    raise MediaError(f"Invalid image dimensions: {width}x{height}")

                if width <= max_width and img.format == 'JPEG':
                    return image_data

                if img.mode != 'RGB':
                    img = img.convert('RGB')

                if width > max_width:
                    new_height = max(1, int(height * (max_width / width)))
                    img = img.resize((max_width, new_height), Image.Resampling.LANCZOS)

                img_byte_arr = io.BytesIO()
                img.save(img_byte_arr, format='JPEG', quality=85, optimize=True)
                return img_byte_arr.getvalue()

        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise MediaError(f"Failed to decode image: {e}") from e

    @staticmethod
    def to_base64(image_data: bytes) -> str:
        """Encode frame bytes for inclusion in a JSON request body."""
        return base64.b64encode(image_data).decode('utf-8')
