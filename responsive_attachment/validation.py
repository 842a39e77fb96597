"""
Image dimension validation rules.

Each rule compares one measured property of the uploaded image with a
configured threshold:

    minImageWidth     width  >= value
    minImageHeight    height >= value
    maxImageWidth     width  <= value
    maxImageHeight    height <= value
    imageAspectRatio  width / height == value

Images whose dimensions cannot be read fail every rule.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from responsive_attachment.attachment import UploadedFile
from responsive_attachment.errors import InvalidFileError
from responsive_attachment.services.utils.image_utils import get_dimensions


class ImageDimensionsValidationRule(str, Enum):
    MAX_IMAGE_WIDTH = "maxImageWidth"
    MAX_IMAGE_HEIGHT = "maxImageHeight"
    MIN_IMAGE_WIDTH = "minImageWidth"
    MIN_IMAGE_HEIGHT = "minImageHeight"
    IMAGE_ASPECT_RATIO = "imageAspectRatio"


class ImageValidationConfigError(ValueError):
    """Raised when a rule is declared without a usable threshold"""


@dataclass
class CompiledRule:
    validation_value: float


@dataclass
class ValidationFailure:
    rule: str
    message: str


class ImageDimensionsCheck:
    """Checks an uploaded image against one dimension rule"""

    def __init__(self, rule_name: Union[ImageDimensionsValidationRule, str], logger: Optional[logging.Logger] = None):
        self.rule_name = ImageDimensionsValidationRule(rule_name)
        self.logger = logger or logging.getLogger(__name__)

    def compile(self, validation_value: Optional[float]) -> CompiledRule:
        """Validate the rule declaration, before any data is seen"""
        if not validation_value:
            raise ImageValidationConfigError(f'"{self.rule_name.value}" rule expects a "validationValue"')
        return CompiledRule(validation_value=validation_value)

    def _failure(self) -> ValidationFailure:
        return ValidationFailure(
            rule=self.rule_name.value,
            message=f"{self.rule_name.value} validation failure",
        )

    async def _read(self, value: Union[bytes, UploadedFile]) -> bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if not value.tmp_path:
            raise InvalidFileError("File is invalid")
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, Path(value.tmp_path).read_bytes)

    async def validate(
        self,
        value: Union[bytes, UploadedFile, None],
        compiled: CompiledRule,
    ) -> Optional[ValidationFailure]:
        """
        Validate an image.

        Args:
            value: Image bytes or uploaded file; nothing to validate when None
            compiled: Output of compile()

        Returns:
            ValidationFailure tagged with the rule name, or None when valid
        """
        if not value:
            return None

        width, height = get_dimensions(await self._read(value))
        threshold = compiled.validation_value
        rule = self.rule_name

        if rule is ImageDimensionsValidationRule.MIN_IMAGE_WIDTH:
            valid = bool(width) and width >= threshold
        elif rule is ImageDimensionsValidationRule.MIN_IMAGE_HEIGHT:
            valid = bool(height) and height >= threshold
        elif rule is ImageDimensionsValidationRule.MAX_IMAGE_WIDTH:
            valid = bool(width) and width <= threshold
        elif rule is ImageDimensionsValidationRule.MAX_IMAGE_HEIGHT:
            valid = bool(height) and height <= threshold
        else:
            valid = bool(width) and bool(height) and width / height == threshold

        if valid:
            return None

        self.logger.debug(f"{rule.value} failed: {width}x{height} against {threshold}")
        return self._failure()
