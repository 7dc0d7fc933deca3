"""Iterative SLIC refinement: local assignment and center update."""
import logging

import numpy as np

from slicpix.seeding import ClusterSet
from slicpix.types import SampledImage, NUM_ITERATIONS, UNASSIGNED

logger = logging.getLogger(__name__)


def assign_pixels(
    sample: SampledImage,
    clusters: ClusterSet,
    labels: np.ndarray,
    distances: np.ndarray,
    step: int,
    compactness: float
) -> None:
    """
    Assign valid pixels to the nearest cluster within each cluster's window.

    Clusters are visited in index order. Each scans [x - S, x + S) x
    [y - S, y + S) around its truncated center, S = step, and claims a pixel
    when D^2 = dLab^2 + (m^2 / S^2) * dXY^2 is strictly below the pixel's
    running minimum. `distances` is shared across all clusters of the sweep.

    Args:
        sample: Sampled input image
        clusters: Current cluster centers
        labels: (H, W) label field, updated in place
        distances: (H, W) best distance so far, updated in place
        step: Seed spacing, reused as search radius
        compactness: Spatial weight m
    """
    height, width = sample.height, sample.width
    weight = (compactness * compactness) / (step * step)

    for k, (l_val, a_val, b_val, x, y) in enumerate(clusters.centers):
        cx, cy = int(x), int(y)
        start_x, end_x = max(0, cx - step), min(width, cx + step)
        start_y, end_y = max(0, cy - step), min(height, cy + step)
        if start_x >= end_x or start_y >= end_y:
            continue

        lab = sample.lab[start_y:end_y, start_x:end_x]
        d_lab = (
            (lab[..., 0] - l_val) ** 2
            + (lab[..., 1] - a_val) ** 2
            + (lab[..., 2] - b_val) ** 2
        )

        dx = np.arange(start_x, end_x, dtype=np.float64) - x
        dy = np.arange(start_y, end_y, dtype=np.float64) - y
        d_xy = dx[np.newaxis, :] ** 2 + dy[:, np.newaxis] ** 2

        dist = d_lab + weight * d_xy

        best = distances[start_y:end_y, start_x:end_x]
        closer = sample.valid[start_y:end_y, start_x:end_x] & (dist < best)
        best[closer] = dist[closer]
        labels[start_y:end_y, start_x:end_x][closer] = k


def update_centers(
    sample: SampledImage,
    clusters: ClusterSet,
    labels: np.ndarray
) -> ClusterSet:
    """
    Recompute each cluster as the mean of its member pixels.

    Only valid pixels with a label in range contribute. A cluster that ends
    up with no members keeps its previous values.

    Args:
        sample: Sampled input image
        clusters: Centers before the update
        labels: (H, W) label field from the assignment sweep

    Returns:
        New ClusterSet
    """
    previous = clusters.copy()
    n_clusters = len(clusters)

    members = sample.valid & (labels >= 0) & (labels < n_clusters)
    owner = labels[members]
    ys, xs = np.nonzero(members)
    lab = sample.lab[members]

    counts = np.bincount(owner, minlength=n_clusters)
    sums = np.stack([
        np.bincount(owner, weights=lab[:, 0], minlength=n_clusters),
        np.bincount(owner, weights=lab[:, 1], minlength=n_clusters),
        np.bincount(owner, weights=lab[:, 2], minlength=n_clusters),
        np.bincount(owner, weights=xs.astype(np.float64), minlength=n_clusters),
        np.bincount(owner, weights=ys.astype(np.float64), minlength=n_clusters),
    ], axis=-1)

    updated = ClusterSet(np.zeros((n_clusters, 5)), counts)
    occupied = counts > 0
    updated.centers[occupied] = sums[occupied] / counts[occupied, np.newaxis]

    # Roll empty clusters back instead of collapsing them to zero
    empty = ~occupied
    updated.centers[empty] = previous.centers[empty]
    updated.counts[empty] = previous.counts[empty]

    if empty.any():
        logger.debug(f"{int(empty.sum())} empty clusters rolled back")

    return updated


class Refiner:
    """
    Per-invocation state of the Lloyd-style refinement loop.

    Holds the label and distance fields for one segmentation. Labels are
    never reset between iterations, so a pixel no window reaches in a later
    sweep keeps its earlier owner.
    """

    def __init__(
        self,
        sample: SampledImage,
        clusters: ClusterSet,
        step: int,
        compactness: float,
        iterations: int = NUM_ITERATIONS
    ):
        self.sample = sample
        self.clusters = clusters
        self.step = step
        self.compactness = compactness
        self.iterations = iterations

        self.labels = np.full(sample.shape, UNASSIGNED, dtype=np.int32)
        self.distances = np.full(sample.shape, np.inf, dtype=np.float64)

    def run_iteration(self, iteration: int) -> ClusterSet:
        """Run one assignment sweep followed by one center update."""
        assign_pixels(
            self.sample,
            self.clusters,
            self.labels,
            self.distances,
            self.step,
            self.compactness
        )
        self.clusters = update_centers(self.sample, self.clusters, self.labels)

        if iteration < self.iterations - 1:
            self.distances.fill(np.inf)

        logger.debug(f"Iteration {iteration + 1}/{self.iterations} done")
        return self.clusters

    def run(self) -> ClusterSet:
        """Run all iterations without checkpoints."""
        for iteration in range(self.iterations):
            self.run_iteration(iteration)
        return self.clusters

    def release(self) -> None:
        """Drop the per-pixel working arrays."""
        self.labels = None
        self.distances = None
