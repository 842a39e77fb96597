"""
Image derivation pipeline: optimization of the original upload, responsive
breakpoints, the preview thumbnail and the blurhash placeholder.

Decoding and encoding is CPU bound, so every Pillow call runs in the default
executor to avoid blocking the event loop.
"""
import asyncio
import io
import logging
from typing import List, Optional, Tuple

from PIL import Image, ImageOps

from responsive_attachment.schemas import (
    THUMBNAIL_RESIZE_OPTIONS,
    AttachmentOptions,
    ImageData,
    OptimizedInfo,
    OptimizedOutput,
)
from responsive_attachment.services.blurhash_encoder import encode_image_to_blurhash
from responsive_attachment.services.naming import generate_name
from responsive_attachment.services.utils.image_utils import (
    ALLOWED_FORMATS,
    bytes_to_kbytes,
    can_be_processed,
    get_dimensions,
    get_image_extension,
    mime_type_for,
    normalize_format,
    probe,
)

logger = logging.getLogger(__name__)

BreakpointFormat = Tuple[str, ImageData]

_SAVE_KWARGS = {
    "jpeg": {"quality": 80, "optimize": True},
    "png": {"optimize": True},
    "webp": {"quality": 80, "method": 4},
    "avif": {"quality": 80},
    "tiff": {"compression": "tiff_lzw"},
}

_WRITABLE_MODES = {
    "jpeg": ("L", "RGB", "CMYK"),
    "png": ("1", "L", "LA", "I", "P", "RGB", "RGBA"),
    "webp": ("RGB", "RGBA"),
    "avif": ("RGB", "RGBA"),
    "tiff": ("1", "L", "LA", "P", "RGB", "RGBA", "CMYK"),
}


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


def _encode(img: Image.Image, image_format: str, icc_profile: Optional[bytes] = None) -> bytes:
    """Encode a decoded image with the optimizer settings of its format"""
    if img.mode not in _WRITABLE_MODES[image_format]:
        keep_alpha = _has_alpha(img) and "RGBA" in _WRITABLE_MODES[image_format]
        img = img.convert("RGBA" if keep_alpha else "RGB")

    save_kwargs = dict(_SAVE_KWARGS[image_format])
    if icc_profile:
        save_kwargs["icc_profile"] = icc_profile

    out = io.BytesIO()
    img.save(out, format=image_format.upper(), **save_kwargs)
    return out.getvalue()


def _optimize(img_bytes: bytes, options: AttachmentOptions) -> OptimizedOutput:
    try:
        with Image.open(io.BytesIO(img_bytes)) as img:
            img.load()
            source_format = normalize_format(img.format)
            icc_profile = img.info.get("icc_profile")
            if options.optimize_orientation:
                img = ImageOps.exif_transpose(img)
            data = _encode(img, options.force_format or source_format, icc_profile)
    except Exception as e:
        logger.debug(f"Optimization skipped, keeping original buffer: {e}")
        return OptimizedOutput(buffer=img_bytes)

    # Re-encoding an already efficient file can make it bigger
    output = data if len(data) < len(img_bytes) else img_bytes

    info = probe(output)
    if info is None or not info.is_supported:
        return OptimizedOutput(buffer=img_bytes)

    return OptimizedOutput(
        buffer=output,
        info=OptimizedInfo(
            width=info.width,
            height=info.height,
            size=bytes_to_kbytes(len(output)),
            format=info.format,
            mime_type=mime_type_for(info.format),
            extname=get_image_extension(info.format),
        ),
    )


def _resize(img_bytes: bytes, box: Tuple[int, int], force_format: Optional[str] = None) -> Optional[bytes]:
    """Fit the image inside box (never upscales) and re-encode it"""
    try:
        with Image.open(io.BytesIO(img_bytes)) as img:
            target_format = force_format or normalize_format(img.format)
            if target_format not in ALLOWED_FORMATS:
                return None
            icc_profile = img.info.get("icc_profile")
            img.thumbnail(box, Image.Resampling.LANCZOS)
            return _encode(img, target_format, icc_profile)
    except Exception as e:
        logger.warning(f"Resize to {box[0]}x{box[1]} failed: {e}")
        return None


async def optimize(img_bytes: bytes, options: Optional[AttachmentOptions] = None) -> OptimizedOutput:
    """
    Optimize the uploaded buffer.

    Auto-rotates according to EXIF orientation, optionally converts to
    options.force_format and re-encodes with the format optimizer. The
    re-encoded buffer is only used when it is strictly smaller.

    Args:
        img_bytes: Raw image bytes
        options: Attachment options

    Returns:
        OptimizedOutput. info is None when the buffer was returned
        untouched because optimization is disabled or not possible
    """
    options = options or AttachmentOptions()

    if not options.optimize_size or not can_be_processed(img_bytes):
        return OptimizedOutput(buffer=img_bytes)

    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _optimize, img_bytes, options)


async def resize_to(
    img_bytes: bytes,
    options: AttachmentOptions,
    box: Tuple[int, int],
) -> Optional[bytes]:
    """Resize into box respecting options.force_format, None on failure"""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _resize, img_bytes, box, options.force_format)


async def _derive(
    key: str,
    image_data: ImageData,
    box: Tuple[int, int],
    options: AttachmentOptions,
) -> Optional[ImageData]:
    data = await resize_to(image_data.buffer, options, box)
    if data is None:
        return None

    info = probe(data)
    if info is None:
        return None

    extname = get_image_extension(info.format)
    return ImageData(
        name=generate_name(
            extname=extname,
            hash=image_data.hash,
            options=options,
            prefix=key,
            file_name=image_data.file_name,
        ),
        hash=image_data.hash,
        extname=extname,
        mime_type=mime_type_for(info.format),
        format=info.format,
        width=info.width,
        height=info.height,
        size=bytes_to_kbytes(len(data)),
        buffer=data,
        file_name=image_data.file_name,
    )


def breakpoint_smaller_than(breakpoint: int, width: Optional[int], height: Optional[int]) -> bool:
    return (width is not None and breakpoint < width) or (height is not None and breakpoint < height)


async def generate_breakpoint(
    key: str,
    image_data: ImageData,
    breakpoint: int,
    options: AttachmentOptions,
) -> Optional[BreakpointFormat]:
    """Produce one breakpoint rendition, None when the resize failed"""
    file = await _derive(key, image_data, (breakpoint, breakpoint), options)
    if file is None:
        return None

    file.blurhash = image_data.blurhash
    return key, file


async def generate_breakpoint_images(
    image_data: ImageData,
    options: AttachmentOptions,
) -> List[BreakpointFormat]:
    """
    Generate every active breakpoint smaller than the source image.

    Breakpoints are independent, so they are resized concurrently. The
    result keeps the configuration order; breakpoints that are off, not
    smaller than the source or failed to resize are absent.
    """
    if not options.responsive_dimensions:
        return []

    if not can_be_processed(image_data.buffer):
        return []

    width, height = get_dimensions(image_data.buffer)

    eligible = [
        (key, value)
        for key, value in options.active_breakpoints()
        if breakpoint_smaller_than(value, width, height)
    ]
    if not eligible:
        return []

    results = await asyncio.gather(
        *(generate_breakpoint(key, image_data, value, options) for key, value in eligible)
    )
    return [result for result in results if result is not None]


async def generate_thumbnail(
    image_data: ImageData,
    options: AttachmentOptions,
) -> Optional[ImageData]:
    """
    Generate the preview thumbnail fitted inside THUMBNAIL_RESIZE_OPTIONS.

    The thumbnail is also the blurhash source, so it is generated when
    blurhash is enabled even if thumbnails themselves are disabled. Images
    that already fit inside the box get no thumbnail.
    """
    blurhash_enabled = options.blurhash.enabled

    if not can_be_processed(image_data.buffer):
        return None

    if not blurhash_enabled and (not options.responsive_dimensions or options.disable_thumbnail):
        return None

    width, height = get_dimensions(image_data.buffer)
    if not width or not height:
        return None

    box_width, box_height = THUMBNAIL_RESIZE_OPTIONS
    if width <= box_width and height <= box_height:
        return None

    thumbnail = await _derive("thumbnail", image_data, THUMBNAIL_RESIZE_OPTIONS, options)
    if thumbnail is None:
        return None

    if blurhash_enabled:
        thumbnail.blurhash = await encode_image_to_blurhash(options, thumbnail.buffer)

    return thumbnail


async def generate_blurhash(
    image_data: ImageData,
    options: AttachmentOptions,
    thumbnail: Optional[ImageData] = None,
) -> Optional[str]:
    """
    Blurhash shared by every rendition of one save.

    Reuses the thumbnail hash when there is one. Otherwise the source is
    fitted into the thumbnail box first, which for images that are already
    small enough is the image itself.
    """
    if not options.blurhash.enabled:
        return None

    if thumbnail is not None and thumbnail.blurhash:
        return thumbnail.blurhash

    if not can_be_processed(image_data.buffer):
        return None

    source = image_data.buffer
    width, height = get_dimensions(source)
    box_width, box_height = THUMBNAIL_RESIZE_OPTIONS
    if (width or 0) > box_width or (height or 0) > box_height:
        source = await resize_to(source, options, THUMBNAIL_RESIZE_OPTIONS)
        if source is None:
            return None

    return await encode_image_to_blurhash(options, source)
