"""Main pipeline orchestrator for slicpix."""
import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from slicpix.raster_ingest import load_image, save_image
from slicpix.session import ProgressTracker, SlicSegmenter, SourceBuffer
from slicpix.types import ProcessResult, SegmentationResult, SlicConfig, SlicError
from slicpix.viz_utils import boundary_overlay, save_debug_stages

logger = logging.getLogger(__name__)


def segment(
    image: np.ndarray,
    config: Optional[SlicConfig] = None,
    poll: Optional[Callable[[], ProcessResult]] = None,
    progress: Optional[Callable[[int], None]] = None
) -> SegmentationResult:
    """
    Segment an image into superpixels flattened to their mean colors.

    Args:
        image: uint8 image (H, W), (H, W, 3) or (H, W, 4)
        config: Segmentation configuration. Uses defaults if None.
        poll: Optional per-iteration checkpoint
        progress: Optional callback receiving done-units

    Returns:
        SegmentationResult

    Raises:
        SlicError: If the checkpoint stopped the segmentation
    """
    config = config or SlicConfig()
    segmenter = SlicSegmenter(config)
    outcome = segmenter.run(
        SourceBuffer.from_array(image),
        poll=poll,
        progress=ProgressTracker(config.progress_total, progress)
    )
    if outcome is not ProcessResult.CONTINUE:
        raise SlicError(f"Segmentation stopped by checkpoint ({outcome.name})")
    return segmenter.result


class SlicPipeline:
    """File-to-file superpixel filter."""

    def __init__(self, config: Optional[SlicConfig] = None):
        """Initialize pipeline with configuration.

        Args:
            config: Segmentation configuration. Uses defaults if None.
        """
        self.config = config or SlicConfig()
        self.debug_stages: List[Tuple[str, np.ndarray]] = []
        self.result: Optional[SegmentationResult] = None

    def process(
        self,
        image_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
        debug: bool = False,
    ) -> np.ndarray:
        """Process an image file.

        Args:
            image_path: Path to input image
            output_path: Optional path to save the RGBA result
            debug: If True, collect intermediate stage images

        Returns:
            RGBA result array (H, W, 4)

        Raises:
            FileNotFoundError: If input file doesn't exist
            SlicError: If processing fails
        """
        try:
            image = load_image(image_path)
            self.debug_stages = []

            if debug:
                self.debug_stages.append(("1_original", image))

            self.result = segment(image, self.config)

            if debug:
                self.debug_stages.append(
                    ("2_boundaries", boundary_overlay(image, self.result.labels))
                )
                self.debug_stages.append(("3_superpixels", self.result.output))

            if output_path:
                save_image(self.result.output, output_path)
                logger.info(f"Saved {output_path}")

            return self.result.output

        except (FileNotFoundError, SlicError):
            raise
        except Exception as e:
            raise SlicError(f"Pipeline processing failed: {e}") from e

    def save_debug(self, directory: Union[str, Path]) -> List[Path]:
        """Write the collected debug stages as PNG files."""
        return save_debug_stages(self.debug_stages, Path(directory))


def process_image(
    image_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[SlicConfig] = None,
) -> np.ndarray:
    """Process an image through the SLIC filter.

    Convenience function for one-off processing.

    Example:
        >>> result = process_image("input.png", "output.png")
        >>> result = process_image("input.png", config=SlicConfig(cell_size=12))
    """
    pipeline = SlicPipeline(config)
    return pipeline.process(image_path, output_path)
