"""Raster image ingestion: packed pixel buffers to Lab fields."""
import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image
from PIL import ImageOps

from slicpix.color import rgb_to_lab
from slicpix.types import SampledImage, SlicError, InvalidGeometryError

logger = logging.getLogger(__name__)


def sample_buffer(
    width: int,
    height: int,
    buffer,
    row_stride: int,
    bytes_per_pixel: int
) -> SampledImage:
    """
    Sample a packed, row-major pixel buffer with top-left origin.

    Each pixel is read as R, G, B and, when `bytes_per_pixel >= 4`, A
    (otherwise alpha is 255). Bytes past `width * bytes_per_pixel` in a row
    are padding and ignored.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        buffer: Bytes-like object or uint8 array holding the pixels
        row_stride: Distance between row starts in bytes
        bytes_per_pixel: 3 (RGB) or 4 (RGBA)

    Returns:
        SampledImage with Lab colors, validity mask and seeded RGBA output

    Raises:
        InvalidGeometryError: If the geometry does not fit the buffer
    """
    if width <= 0 or height <= 0:
        raise InvalidGeometryError(f"Invalid image size {width}x{height}")

    if bytes_per_pixel not in (3, 4):
        raise InvalidGeometryError(
            f"bytes_per_pixel must be 3 or 4, got {bytes_per_pixel}"
        )

    row_bytes = width * bytes_per_pixel
    if row_stride < row_bytes:
        raise InvalidGeometryError(
            f"Row stride {row_stride} is smaller than a row of {row_bytes} bytes"
        )

    data = np.frombuffer(buffer, dtype=np.uint8)
    needed = (height - 1) * row_stride + row_bytes
    if data.size < needed:
        raise InvalidGeometryError(
            f"Buffer holds {data.size} bytes, {needed} required for "
            f"{width}x{height} at stride {row_stride}"
        )

    # Strided view: (H, W, bpp) without copying the padding
    pixels = np.lib.stride_tricks.as_strided(
        data,
        shape=(height, width, bytes_per_pixel),
        strides=(row_stride, bytes_per_pixel, 1),
        writeable=False
    )

    output = np.empty((height, width, 4), dtype=np.uint8)
    output[..., :3] = pixels[..., :3]
    if bytes_per_pixel >= 4:
        output[..., 3] = pixels[..., 3]
    else:
        output[..., 3] = 255

    return _sample_rgba(output)


def normalize_channels(image: np.ndarray) -> np.ndarray:
    """
    Bring a uint8 image into packed RGB or RGBA layout.

    Args:
        image: uint8 array (H, W), (H, W, 2), (H, W, 3) or (H, W, 4)

    Returns:
        C-contiguous uint8 array (H, W, 3) or (H, W, 4)
    """
    image = np.asarray(image)

    if image.dtype != np.uint8:
        raise ValueError(f"Image must be uint8, got {image.dtype}")

    if image.ndim == 2:
        # Grayscale - convert to RGB
        image = np.stack([image] * 3, axis=-1)
    elif image.ndim == 3 and image.shape[2] == 2:
        # Grayscale + alpha
        image = np.concatenate([image[..., :1]] * 3 + [image[..., 1:]], axis=-1)

    if image.ndim != 3:
        raise InvalidGeometryError(f"Expected 2D or 3D array, got {image.ndim}D")

    if image.shape[2] not in (3, 4):
        raise InvalidGeometryError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    return np.ascontiguousarray(image)


def sample_array(image: np.ndarray) -> SampledImage:
    """Sample a numpy image in any layout accepted by `normalize_channels`."""
    packed = normalize_channels(image)
    height, width, channels = packed.shape
    return sample_buffer(width, height, packed, width * channels, channels)


def _sample_rgba(rgba: np.ndarray) -> SampledImage:
    """Build the Lab field and validity mask from an RGBA array."""
    height, width = rgba.shape[:2]
    lab = rgb_to_lab(rgba[..., :3])
    valid = rgba[..., 3] != 0

    logger.debug(
        f"Sampled {width}x{height} image, {int(valid.sum())} valid pixels"
    )

    return SampledImage(
        width=width,
        height=height,
        lab=lab,
        valid=valid,
        output=rgba
    )


def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Load an image file as an RGBA array.

    Args:
        path: Path to image file

    Returns:
        uint8 array (H, W, 4)

    Raises:
        FileNotFoundError: If file doesn't exist
        SlicError: If file cannot be loaded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise SlicError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            # Apply EXIF orientation transformation to handle rotation
            img = ImageOps.exif_transpose(img)
            if img.mode != 'RGBA':
                img = img.convert('RGBA')
            return np.array(img)
    except (IOError, OSError) as e:
        raise SlicError(f"Failed to load image {path}: {e}") from e


def save_image(image: np.ndarray, path: Union[str, Path]) -> None:
    """Save an RGB or RGBA uint8 array."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    Image.fromarray(np.ascontiguousarray(image)).save(path)
