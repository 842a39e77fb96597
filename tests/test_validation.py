"""
Test suite for image dimension validation rules
"""
import pytest

from responsive_attachment.attachment import UploadedFile
from responsive_attachment.errors import InvalidFileError
from responsive_attachment.validation import (
    ImageDimensionsCheck,
    ImageDimensionsValidationRule,
    ImageValidationConfigError,
)
from tests.helpers import make_image_bytes


@pytest.fixture
def image_800x600():
    return make_image_bytes(800, 600, format="PNG")


@pytest.mark.asyncio
@pytest.mark.parametrize("rule,value,passes", [
    ("minImageWidth", 800, True),
    ("minImageWidth", 801, False),
    ("minImageHeight", 600, True),
    ("minImageHeight", 1000, False),
    ("maxImageWidth", 800, True),
    ("maxImageWidth", 799, False),
    ("maxImageHeight", 600, True),
    ("maxImageHeight", 599, False),
    ("imageAspectRatio", 4 / 3, True),
    ("imageAspectRatio", 16 / 9, False),
])
async def test_rules(image_800x600, rule, value, passes):
    check = ImageDimensionsCheck(rule)
    failure = await check.validate(image_800x600, check.compile(value))

    if passes:
        assert failure is None
    else:
        assert failure.rule == rule
        assert failure.message == f"{rule} validation failure"


@pytest.mark.asyncio
async def test_uploaded_file(tmp_path, image_800x600):
    path = tmp_path / "upload.tmp"
    path.write_bytes(image_800x600)
    upload = UploadedFile(field_name="avatar", tmp_path=str(path), subtype="png")

    check = ImageDimensionsCheck(ImageDimensionsValidationRule.MAX_IMAGE_WIDTH)
    assert await check.validate(upload, check.compile(1000)) is None
    assert await check.validate(upload, check.compile(500)) is not None

    with pytest.raises(InvalidFileError):
        await check.validate(UploadedFile(field_name="avatar"), check.compile(500))


@pytest.mark.asyncio
async def test_missing_value_is_not_validated():
    check = ImageDimensionsCheck("minImageWidth")
    assert await check.validate(None, check.compile(10)) is None


@pytest.mark.asyncio
async def test_unreadable_image_fails_every_rule():
    for rule in ImageDimensionsValidationRule:
        check = ImageDimensionsCheck(rule)
        failure = await check.validate(b"not an image", check.compile(1))
        assert failure.rule == rule.value


@pytest.mark.parametrize("value", [None, 0])
def test_compile_requires_value(value):
    with pytest.raises(ImageValidationConfigError):
        ImageDimensionsCheck("maxImageHeight").compile(value)


def test_unknown_rule():
    with pytest.raises(ValueError):
        ImageDimensionsCheck("maxFileSize")
