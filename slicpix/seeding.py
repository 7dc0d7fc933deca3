"""Grid seeding of SLIC cluster centers."""
import logging
from typing import Optional, Tuple

import numpy as np

from slicpix.types import SampledImage, MIN_CELL_SIZE

logger = logging.getLogger(__name__)


class ClusterSet:
    """
    Contiguous store of cluster centers.

    Row k of `centers` holds the mean L, a, b and the mean x, y position of
    cluster k; `counts[k]` is its membership in the current iteration. A
    cluster's identity is its row index, which is also the label value.
    """

    def __init__(self, centers: np.ndarray, counts: Optional[np.ndarray] = None):
        self.centers = np.asarray(centers, dtype=np.float64).reshape(-1, 5)
        if counts is None:
            counts = np.zeros(len(self.centers), dtype=np.int64)
        self.counts = np.asarray(counts, dtype=np.int64)

    def __len__(self) -> int:
        return len(self.centers)

    @property
    def colors(self) -> np.ndarray:
        """(K, 3) view of the Lab means."""
        return self.centers[:, :3]

    @property
    def positions(self) -> np.ndarray:
        """(K, 2) view of the x, y means."""
        return self.centers[:, 3:]

    def copy(self) -> 'ClusterSet':
        return ClusterSet(self.centers.copy(), self.counts.copy())


def clamp_step(cell_size: int) -> int:
    """Clamp the seed spacing to the smallest usable grid."""
    step = int(cell_size)
    if step < MIN_CELL_SIZE:
        logger.debug(f"Cell size {cell_size} clamped to {MIN_CELL_SIZE}")
        step = MIN_CELL_SIZE
    return step


def find_valid_seed(
    valid: np.ndarray,
    x: int,
    y: int,
    radius: int
) -> Optional[Tuple[int, int]]:
    """
    Find the first valid pixel around an invalid grid point.

    Scans the square [y - radius, y + radius) x [x - radius, x + radius),
    clipped to the image, in row-major order.

    Returns:
        (x, y) of the first valid pixel, or None
    """
    height, width = valid.shape
    start_y, end_y = max(0, y - radius), min(height, y + radius)
    start_x, end_x = max(0, x - radius), min(width, x + radius)

    window = valid[start_y:end_y, start_x:end_x]
    hits = np.flatnonzero(window)
    if hits.size == 0:
        return None

    # flatnonzero is row-major, so the first hit is the first in scan order
    row, col = divmod(int(hits[0]), window.shape[1])
    return start_x + col, start_y + row


def seed_clusters(sample: SampledImage, step: int) -> ClusterSet:
    """
    Lay out initial cluster centers on a regular grid.

    Grid points start at (step // 2, step // 2) with stride `step`. A point
    on an invalid pixel moves to the first valid pixel within step // 2; if
    there is none the point is skipped.

    Args:
        sample: Sampled input image
        step: Seed spacing (already clamped)

    Returns:
        ClusterSet in grid order
    """
    half = step // 2
    seeds = []
    relocated = 0
    skipped = 0

    for y in range(half, sample.height, step):
        for x in range(half, sample.width, step):
            cx, cy = x, y
            if not sample.valid[y, x]:
                found = find_valid_seed(sample.valid, x, y, half)
                if found is None:
                    skipped += 1
                    continue
                cx, cy = found
                relocated += 1

            l_val, a_val, b_val = sample.lab[cy, cx]
            seeds.append((l_val, a_val, b_val, float(cx), float(cy)))

    logger.debug(
        f"Seeded {len(seeds)} clusters at step {step} "
        f"({relocated} relocated, {skipped} skipped)"
    )

    return ClusterSet(np.array(seeds, dtype=np.float64).reshape(-1, 5))
