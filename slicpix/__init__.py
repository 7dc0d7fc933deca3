"""slicpix: SLIC superpixel segmentation.

Partitions an image into compact, color-coherent superpixels by clustering
pixels in joint Lab color and position space, then flattens every region to
its mean color.
"""
from slicpix.types import (
    SlicConfig,
    SampledImage,
    SegmentationResult,
    ProcessResult,
    Phase,
    FilterResult,
    SlicError,
    InvalidGeometryError,
    ResourceError,
)
from slicpix.pipeline import SlicPipeline, segment, process_image

__version__ = "0.1.0"

__all__ = [
    "SlicConfig",
    "SampledImage",
    "SegmentationResult",
    "ProcessResult",
    "Phase",
    "FilterResult",
    "SlicError",
    "InvalidGeometryError",
    "ResourceError",
    "SlicPipeline",
    "segment",
    "process_image",
]
