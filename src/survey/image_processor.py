"""
Image Processor

Validates nameplate photos before upload and encodes them for the
analysis service.
"""

import base64
import io
import os
from typing import Dict, List, Tuple

from PIL import Image


class ImageProcessor:
    """
    Validates and encodes survey images.
    """

    SUPPORTED_FORMATS = {"JPEG", "PNG", "WEBP"}
    MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB
    MIN_DIMENSION = 100

    def validate_image(self, image_path: str) -> Dict:
        """
        Validate an image file.

        Args:
            image_path: Path to image file

        Returns:
            Validation result with status and any errors
        """
        errors = []

        if not os.path.exists(image_path):
            errors.append(f"File not found: {image_path}")
            return {"valid": False, "errors": errors}

        file_size = os.path.getsize(image_path)
        if file_size > self.MAX_FILE_SIZE:
            errors.append(f"File too large: {file_size} bytes (max {self.MAX_FILE_SIZE})")

        with open(image_path, 'rb') as f:
            errors.extend(self._check_image(f.read()))

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "file_size": file_size if not errors else None
        }

    def validate_image_data(self, image_data: bytes) -> Dict:
        """
        Validate image data from bytes.

        Args:
            image_data: Image data as bytes

        Returns:
            Validation result
        """
        errors = []

        data_size = len(image_data)
        if data_size > self.MAX_FILE_SIZE:
            errors.append(f"Data too large: {data_size} bytes (max {self.MAX_FILE_SIZE})")

        errors.extend(self._check_image(image_data))

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "data_size": data_size if not errors else None
        }

    def _check_image(self, image_data: bytes) -> List[str]:
        errors = []
        try:
            with Image.open(io.BytesIO(image_data)) as img:
                if img.format not in self.SUPPORTED_FORMATS:
                    errors.append(f"Unsupported format: {img.format}")

                width, height = img.size
                if width < self.MIN_DIMENSION or height < self.MIN_DIMENSION:
                    errors.append(
                        f"Image too small: {width}x{height} "
                        f"(minimum {self.MIN_DIMENSION}x{self.MIN_DIMENSION})"
                    )
        except OSError as e:
            errors.append(f"Failed to open image: {e}")
        return errors

    @staticmethod
    def encode_image(image_path: str) -> str:
        """Read an image file and return it base64-encoded."""
        with open(image_path, 'rb') as f:
            return base64.b64encode(f.read()).decode("ascii")

    def prepare_uploads(self, image_paths: List[str]) -> Tuple[List[str], Dict[str, List[str]]]:
        """
        Validate and encode a batch of images.

        Args:
            image_paths: Paths to image files

        Returns:
            (encoded images in input order, {path: errors} for rejected files)
        """
        encoded = []
        rejected = {}
        for path in image_paths:
            result = self.validate_image(path)
            if result["valid"]:
                encoded.append(self.encode_image(path))
            else:
                rejected[path] = result["errors"]
        return encoded, rejected


__all__ = ["ImageProcessor"]
