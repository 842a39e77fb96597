import io

import numpy as np
from PIL import Image


def make_image_bytes(width: int, height: int, format: str = "JPEG", quality: int = 95, seed: int = 7, **save_kwargs) -> bytes:
    """Gradient with noise, so encoded sizes grow with the pixel count"""
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)[:, None]
    base = np.stack([np.broadcast_to(x, (height, width)), np.broadcast_to(y, (height, width)), (x + y) / 2], axis=-1)
    noise = rng.normal(0, 40, size=(height, width, 3))
    pixels = np.clip(base + noise, 0, 255).astype(np.uint8)

    img = Image.fromarray(pixels, "RGB")
    buf = io.BytesIO()
    if format.upper() == "JPEG":
        save_kwargs.setdefault("quality", quality)
    img.save(buf, format=format, **save_kwargs)
    return buf.getvalue()


def stored_files(root) -> list:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())
