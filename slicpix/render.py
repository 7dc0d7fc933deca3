"""Flatten each superpixel to its mean color."""
import numpy as np

from slicpix.color import lab_to_rgb
from slicpix.seeding import ClusterSet
from slicpix.types import SampledImage


def render_regions(
    sample: SampledImage,
    clusters: ClusterSet,
    labels: np.ndarray
) -> np.ndarray:
    """
    Paint every labelled pixel with its cluster's mean color.

    Alpha is never touched. Pixels without a label in range keep their
    original color.

    Args:
        sample: Sampled input image; its output buffer is written in place
        clusters: Final cluster centers
        labels: (H, W) label field

    Returns:
        The (H, W, 4) uint8 output buffer
    """
    output = sample.output
    if len(clusters) == 0:
        return output

    palette = lab_to_rgb(clusters.colors)

    owned = (labels >= 0) & (labels < len(clusters))
    output[owned, :3] = palette[labels[owned]]
    return output
