"""Visualization utilities for pipeline stage debugging."""
from pathlib import Path
from typing import List, Tuple

import numpy as np

from slicpix.raster_ingest import save_image
from slicpix.types import UNASSIGNED


def boundary_overlay(
    image: np.ndarray,
    labels: np.ndarray,
    color: Tuple[float, float, float] = (1, 0, 0)
) -> np.ndarray:
    """Draw superpixel boundaries over an RGB(A) image.

    Unassigned pixels form one extra segment of their own.

    Returns:
        uint8 RGB array (H, W, 3)
    """
    from skimage.segmentation import mark_boundaries

    segments = np.where(labels == UNASSIGNED, labels.max() + 1, labels)
    visualization = mark_boundaries(image[..., :3], segments, color=color, mode='thick')
    return (np.clip(visualization, 0, 1) * 255).astype(np.uint8)


def save_debug_stages(stages: List[Tuple[str, np.ndarray]], directory: Path) -> List[Path]:
    """Save (name, image) stages as PNG files under `directory`."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    saved = []
    for stage_name, stage_image in stages:
        path = directory / f"{stage_name}.png"
        save_image(stage_image, path)
        saved.append(path)
    return saved
