"""Blurhash placeholder encoding"""
import asyncio
import io
from typing import Optional

import blurhash
from PIL import Image

from responsive_attachment.schemas import AttachmentOptions

# Limits of the blurhash format
MIN_COMPONENTS = 1
MAX_COMPONENTS = 9


def _encode(image_bytes: bytes, component_x: int, component_y: int) -> str:
    # blurhash.encode converts to RGB itself
    with Image.open(io.BytesIO(image_bytes)) as img:
        return blurhash.encode(img, x_components=component_x, y_components=component_y)


async def encode_image_to_blurhash(
    options: AttachmentOptions,
    image_bytes: Optional[bytes] = None,
) -> str:
    """
    Encode an image into a blurhash string.

    Args:
        options: Attachment options holding the component counts
        image_bytes: Encoded image to summarize (usually the thumbnail)

    Returns:
        Blurhash string

    Raises:
        ValueError: If the component counts are missing or out of range,
            or no buffer is provided
    """
    component_x = options.blurhash.component_x if options.blurhash else None
    component_y = options.blurhash.component_y if options.blurhash else None

    if not component_x or not component_y:
        raise ValueError('Ensure "component_x" and "component_y" are set')
    for value in (component_x, component_y):
        if not MIN_COMPONENTS <= value <= MAX_COMPONENTS:
            raise ValueError(
                f"Blurhash components must be between {MIN_COMPONENTS} and {MAX_COMPONENTS}, got {value}"
            )
    if not image_bytes:
        raise ValueError('Ensure "buffer" is provided')

    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _encode, image_bytes, component_x, component_y)
