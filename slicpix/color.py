"""sRGB <-> CIE Lab conversion (D65 white point).

All functions are vectorised over the trailing channel axis, so they work on
a single pixel, a palette of cluster colors, or a whole image. The scalar
helpers `to_lab` and `to_rgb` run through the same code path so both forms
agree bit-for-bit.
"""
from typing import Tuple

import numpy as np

# D65 reference white
REF_X = 95.047
REF_Y = 100.000
REF_Z = 108.883

LAB_EPSILON = 0.008856
LAB_KAPPA = 7.787
LAB_OFFSET = 16.0 / 116.0


def srgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB to linear RGB.

    Args:
        srgb: sRGB values in range [0, 1]

    Returns:
        Linear RGB values
    """
    return np.where(
        srgb > 0.04045,
        ((srgb + 0.055) / 1.055) ** 2.4,
        srgb / 12.92
    )


def linear_to_srgb(linear: np.ndarray) -> np.ndarray:
    """
    Convert linear RGB to sRGB.

    Values are not clipped; out-of-gamut input stays out of range.

    Args:
        linear: Linear RGB values

    Returns:
        sRGB values
    """
    # The power branch is only selected for positive input
    powered = 1.055 * np.power(np.maximum(linear, 0.0), 1.0 / 2.4) - 0.055
    return np.where(linear > 0.0031308, powered, 12.92 * linear)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert 8-bit sRGB to CIE Lab.

    Args:
        rgb: Array (..., 3) of values in [0, 255]

    Returns:
        Array (..., 3) of float64 L, a, b values
    """
    rgb = np.asarray(rgb, dtype=np.float64) / 255.0
    linear = srgb_to_linear(rgb) * 100.0
    r, g, b = linear[..., 0], linear[..., 1], linear[..., 2]

    x = r * 0.4124 + g * 0.3576 + b * 0.1805
    y = r * 0.2126 + g * 0.7152 + b * 0.0722
    z = r * 0.0193 + g * 0.1192 + b * 0.9505

    xyz = np.stack([x / REF_X, y / REF_Y, z / REF_Z], axis=-1)
    f = np.where(
        xyz > LAB_EPSILON,
        xyz ** (1.0 / 3.0),
        LAB_KAPPA * xyz + LAB_OFFSET
    )
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

    return np.stack([
        116.0 * fy - 16.0,
        500.0 * (fx - fy),
        200.0 * (fy - fz),
    ], axis=-1)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """
    Convert CIE Lab to 8-bit sRGB.

    The inverse nonlinearity branches on the cube of the intermediate value.
    Channels are clamped to [0, 1] and then truncated, not rounded.

    Args:
        lab: Array (..., 3) of L, a, b values

    Returns:
        Array (..., 3) of uint8
    """
    lab = np.asarray(lab, dtype=np.float64)
    fy = (lab[..., 0] + 16.0) / 116.0
    fx = lab[..., 1] / 500.0 + fy
    fz = fy - lab[..., 2] / 200.0

    f = np.stack([fx, fy, fz], axis=-1)
    cubed = f ** 3
    xyz = np.where(cubed > LAB_EPSILON, cubed, (f - LAB_OFFSET) / LAB_KAPPA)

    x = xyz[..., 0] * REF_X
    y = xyz[..., 1] * REF_Y
    z = xyz[..., 2] * REF_Z

    linear = np.stack([
        x * 3.2406 + y * -1.5372 + z * -0.4986,
        x * -0.9689 + y * 1.8758 + z * 0.0415,
        x * 0.0557 + y * -0.2040 + z * 1.0570,
    ], axis=-1) / 100.0

    srgb = np.clip(linear_to_srgb(linear), 0.0, 1.0)
    return (srgb * 255.0).astype(np.uint8)


def to_lab(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """Convert one sRGB byte triple to Lab."""
    lab = rgb_to_lab(np.array([r, g, b], dtype=np.uint8))
    return float(lab[0]), float(lab[1]), float(lab[2])


def to_rgb(l_val: float, a_val: float, b_val: float) -> Tuple[int, int, int]:
    """Convert one Lab triple to an sRGB byte triple."""
    rgb = lab_to_rgb(np.array([l_val, a_val, b_val], dtype=np.float64))
    return int(rgb[0]), int(rgb[1]), int(rgb[2])
