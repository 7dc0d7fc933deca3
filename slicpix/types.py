"""Core types for the SLIC superpixel filter."""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Tuple
import warnings

import numpy as np

# Parameter defaults and host-facing ranges
DEFAULT_CELL_SIZE = 30
MIN_CELL_SIZE = 2
CELL_SIZE_RANGE = (5, 200)

DEFAULT_COMPACTNESS = 20.0
COMPACTNESS_RANGE = (0.1, 100.0)
COMPACTNESS_EPSILON = 1e-6

NUM_ITERATIONS = 10

# Label value for pixels no cluster has claimed
UNASSIGNED = -1


class ProcessResult(Enum):
    """Outcome of a host poll."""
    CONTINUE = auto()
    RESTART = auto()
    EXIT = auto()


class Phase(Enum):
    """States of one segmentation run."""
    SETUP = auto()
    CONVERTING = auto()
    RENDERING = auto()
    DONE = auto()
    ABORTED = auto()


class FilterResult(Enum):
    """Outcome of one filter invocation."""
    SUCCESS = auto()
    FAILED = auto()


@dataclass
class SlicConfig:
    """Configuration for SLIC segmentation."""
    # Seed spacing, also the fixed search radius
    cell_size: int = DEFAULT_CELL_SIZE

    # Weight of spatial distance against Lab distance
    compactness: float = DEFAULT_COMPACTNESS

    iterations: int = NUM_ITERATIONS

    def __post_init__(self):
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {self.iterations}")
        if self.compactness <= 0:
            raise ValueError(f"compactness must be > 0, got {self.compactness}")

        low, high = CELL_SIZE_RANGE
        if not low <= self.cell_size <= high:
            warnings.warn(
                f"cell_size {self.cell_size} is outside the usual range [{low}, {high}]"
            )
        low, high = COMPACTNESS_RANGE
        if not low <= self.compactness <= high:
            warnings.warn(
                f"compactness {self.compactness} is outside the usual range [{low}, {high}]"
            )

    @property
    def progress_total(self) -> int:
        """Progress units: one setup step, one per iteration, one render step."""
        return self.iterations + 2


@dataclass
class SampledImage:
    """Lab color field, validity mask and seeded output of one input image."""
    width: int
    height: int
    lab: np.ndarray     # (H, W, 3) float64
    valid: np.ndarray   # (H, W) bool, alpha != 0
    output: np.ndarray  # (H, W, 4) uint8, original RGBA

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width


@dataclass
class SegmentationResult:
    """Result of a completed segmentation."""
    output: np.ndarray   # (H, W, 4) uint8
    labels: np.ndarray   # (H, W) int, UNASSIGNED where unclaimed
    centers: np.ndarray  # (K, 5) float64: L, a, b, x, y
    counts: np.ndarray   # (K,) members in the final iteration
    cell_size: int
    compactness: float

    @property
    def n_clusters(self) -> int:
        return len(self.centers)


class SlicError(Exception):
    """Base exception for segmentation errors."""
    pass


class InvalidGeometryError(SlicError):
    """Image dimensions or buffer layout cannot be processed."""
    pass


class ResourceError(SlicError):
    """Host buffer could not be acquired, copied or written."""
    pass
