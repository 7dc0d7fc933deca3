"""Cooperative segmentation driver and the host filter boundary.

A host owns the pixels, the parameter properties and the progress UI. It
drives `run_filter`, which polls it at fixed points:

    start    -> before each pass; EXIT stops without output
    continue -> before every refinement iteration; RESTART re-runs the pass
                from ingestion with fresh parameters, EXIT drops the pass
    end      -> after the output was written; RESTART runs another pass

Restart and exit are states of `SlicSegmenter`, not exceptions.
"""
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from slicpix.raster_ingest import normalize_channels, sample_buffer
from slicpix.refine import Refiner
from slicpix.render import render_regions
from slicpix.seeding import clamp_step, seed_clusters
from slicpix.types import (
    COMPACTNESS_EPSILON,
    DEFAULT_CELL_SIZE,
    DEFAULT_COMPACTNESS,
    FilterResult,
    InvalidGeometryError,
    Phase,
    ProcessResult,
    ResourceError,
    SegmentationResult,
    SlicConfig,
)

logger = logging.getLogger(__name__)

POLL_START = "start"
POLL_CONTINUE = "continue"
POLL_END = "end"


@dataclass
class SourceBuffer:
    """Packed source pixels handed over by the host."""
    width: int
    height: int
    buffer: object
    row_stride: int
    bytes_per_pixel: int
    offset: Tuple[int, int] = (0, 0)  # x, y of the extent on the host surface

    @classmethod
    def from_array(
        cls,
        image: np.ndarray,
        offset: Tuple[int, int] = (0, 0),
        row_padding: int = 0
    ) -> 'SourceBuffer':
        """Pack an image array, optionally padding every row."""
        image = normalize_channels(image)
        height, width, channels = image.shape
        rows = image.reshape(height, width * channels)
        if row_padding:
            pad = np.zeros((height, row_padding), dtype=np.uint8)
            rows = np.hstack([rows, pad])
        return cls(
            width=width,
            height=height,
            buffer=np.ascontiguousarray(rows).tobytes(),
            row_stride=rows.shape[1],
            bytes_per_pixel=channels,
            offset=offset
        )


class ProgressTracker:
    """Monotonic done-units counter against a fixed total."""

    def __init__(self, total: int, report: Optional[Callable[[int], None]] = None):
        self.total = total
        self.done = 0
        self._report = report

    def advance(self, units: int = 1) -> None:
        self.done = min(self.total, self.done + units)
        if self._report is not None:
            self._report(self.done)


def _always_continue() -> ProcessResult:
    return ProcessResult.CONTINUE


class SlicSegmenter:
    """
    SLIC segmentation as an explicit state machine.

    SETUP ingests and seeds, CONVERTING runs one refinement iteration per
    step after a progress report and a host poll, RENDERING paints the mean
    colors. A poll answering RESTART or EXIT moves to ABORTED and the
    transient arrays are dropped; no output is produced.
    """

    def __init__(self, config: Optional[SlicConfig] = None):
        self.config = config or SlicConfig()
        self.phase = Phase.SETUP
        self.iteration = 0
        self.outcome = ProcessResult.CONTINUE
        self.result: Optional[SegmentationResult] = None

    def run(
        self,
        source: SourceBuffer,
        poll: Optional[Callable[[], ProcessResult]] = None,
        progress: Optional[ProgressTracker] = None
    ) -> ProcessResult:
        """
        Segment one source buffer.

        Args:
            source: Packed input pixels
            poll: Called before every iteration; defaults to always CONTINUE
            progress: Receives one unit for setup, each iteration and render

        Returns:
            CONTINUE when finished (see `result`), else RESTART or EXIT
        """
        poll = poll or _always_continue
        progress = progress or ProgressTracker(self.config.progress_total)

        self.phase = Phase.SETUP
        self.iteration = 0
        self.outcome = ProcessResult.CONTINUE
        self.result = None

        sample = None
        refiner = None
        step = clamp_step(self.config.cell_size)

        try:
            while self.phase not in (Phase.DONE, Phase.ABORTED):
                if self.phase is Phase.SETUP:
                    sample = sample_buffer(
                        source.width,
                        source.height,
                        source.buffer,
                        source.row_stride,
                        source.bytes_per_pixel
                    )
                    progress.advance()
                    clusters = seed_clusters(sample, step)
                    refiner = Refiner(
                        sample,
                        clusters,
                        step,
                        self.config.compactness,
                        self.config.iterations
                    )
                    self.phase = Phase.CONVERTING

                elif self.phase is Phase.CONVERTING:
                    if self.iteration >= self.config.iterations:
                        self.phase = Phase.RENDERING
                        continue

                    progress.advance()
                    outcome = poll()
                    if outcome is not ProcessResult.CONTINUE:
                        logger.info(
                            f"Segmentation aborted ({outcome.name}) "
                            f"before iteration {self.iteration + 1}"
                        )
                        self.outcome = outcome
                        self.phase = Phase.ABORTED
                        continue

                    refiner.run_iteration(self.iteration)
                    self.iteration += 1

                elif self.phase is Phase.RENDERING:
                    progress.advance()
                    output = render_regions(sample, refiner.clusters, refiner.labels)
                    self.result = SegmentationResult(
                        output=output,
                        labels=refiner.labels,
                        centers=refiner.clusters.centers,
                        counts=refiner.clusters.counts,
                        cell_size=step,
                        compactness=self.config.compactness
                    )
                    self.phase = Phase.DONE
                    logger.info(
                        f"Segmented {sample.width}x{sample.height} into "
                        f"{self.result.n_clusters} superpixels"
                    )
        except Exception:
            self.phase = Phase.ABORTED
            raise
        finally:
            if refiner is not None:
                refiner.release()

        return self.outcome


@dataclass
class FilterParameters:
    """User-editable filter properties with change detection."""
    cell_size: int = DEFAULT_CELL_SIZE
    compactness: float = DEFAULT_COMPACTNESS

    def set_cell_size(self, value: int) -> bool:
        """Store a new cell size; True if it differs from the current one."""
        if self.cell_size != value:
            self.cell_size = value
            return True
        return False

    def set_compactness(self, value: float) -> bool:
        """Store a new compactness; True if it moved by more than 1e-6."""
        if abs(self.compactness - value) > COMPACTNESS_EPSILON:
            self.compactness = value
            return True
        return False

    def to_config(self) -> SlicConfig:
        return SlicConfig(cell_size=self.cell_size, compactness=self.compactness)


class FilterHost:
    """Interface of the application hosting the filter."""

    def poll(self, state: str) -> ProcessResult:
        """Offer control to the host; state is POLL_START, POLL_CONTINUE or POLL_END."""
        raise NotImplementedError

    def read_parameters(self) -> FilterParameters:
        raise NotImplementedError

    def set_progress_total(self, total: int) -> None:
        raise NotImplementedError

    def set_progress_done(self, done: int) -> None:
        raise NotImplementedError

    def acquire_source(self) -> SourceBuffer:
        """Copy the source extent into a packed buffer; raise ResourceError on failure."""
        raise NotImplementedError

    def write_destination(self, output: np.ndarray, offset: Tuple[int, int]) -> None:
        """Copy an RGBA result back at the source extent's offset."""
        raise NotImplementedError

    def release_source(self, source: SourceBuffer) -> None:
        raise NotImplementedError


@contextmanager
def acquired_source(host: FilterHost) -> Iterator[SourceBuffer]:
    """Acquire the source buffer and release it on every exit path."""
    source = host.acquire_source()
    try:
        yield source
    finally:
        host.release_source(source)


def run_filter(host: FilterHost) -> FilterResult:
    """
    Run the filter against a host until it finishes, exits or fails.

    Returns:
        SUCCESS when the host ended or exited the run, FAILED on invalid
        geometry, resource failures or any unexpected error
    """
    try:
        restart = True
        while restart:
            restart = False

            if host.poll(POLL_START) is ProcessResult.EXIT:
                break

            config = host.read_parameters().to_config()
            logger.debug(
                f"Parameters: cell_size={config.cell_size}, "
                f"compactness={config.compactness}"
            )

            with acquired_source(host) as source:
                if source.width <= 0 or source.height <= 0:
                    raise InvalidGeometryError(
                        f"Invalid source size {source.width}x{source.height}"
                    )

                host.set_progress_total(config.progress_total)
                progress = ProgressTracker(config.progress_total, host.set_progress_done)

                segmenter = SlicSegmenter(config)
                outcome = segmenter.run(
                    source,
                    poll=lambda: host.poll(POLL_CONTINUE),
                    progress=progress
                )
                if outcome is ProcessResult.RESTART:
                    restart = True
                    continue
                if outcome is ProcessResult.EXIT:
                    break

                host.write_destination(segmenter.result.output, source.offset)

            if host.poll(POLL_END) is ProcessResult.RESTART:
                restart = True

        return FilterResult.SUCCESS

    except (InvalidGeometryError, ResourceError) as e:
        logger.error(f"Filter aborted: {e}")
        return FilterResult.FAILED
    except Exception:
        logger.exception("Unexpected error while running filter")
        return FilterResult.FAILED


class ArrayHost(FilterHost):
    """
    In-memory host over a numpy canvas.

    The source extent is a rectangle of `canvas`; results are written into
    `destination`, an RGBA copy of the canvas. Poll answers are taken from
    `script` in order and default to CONTINUE once it runs out.
    """

    def __init__(
        self,
        canvas: np.ndarray,
        parameters: Optional[FilterParameters] = None,
        script: Sequence[ProcessResult] = (),
        extent: Optional[Tuple[int, int, int, int]] = None,
        row_padding: int = 0
    ):
        self.canvas = normalize_channels(canvas)
        height, width = self.canvas.shape[:2]

        self.destination = np.empty((height, width, 4), dtype=np.uint8)
        self.destination[..., :3] = self.canvas[..., :3]
        if self.canvas.shape[2] == 4:
            self.destination[..., 3] = self.canvas[..., 3]
        else:
            self.destination[..., 3] = 255

        self.parameters = parameters or FilterParameters()
        self.extent = extent or (0, 0, width, height)  # left, top, right, bottom
        self.row_padding = row_padding

        self._script = deque(script)
        self.polls: List[Tuple[str, ProcessResult]] = []
        self.progress_total: Optional[int] = None
        self.progress: List[int] = []
        self.outstanding = 0
        self.writes = 0

    def poll(self, state: str) -> ProcessResult:
        result = self._script.popleft() if self._script else ProcessResult.CONTINUE
        self.polls.append((state, result))
        return result

    def read_parameters(self) -> FilterParameters:
        return FilterParameters(self.parameters.cell_size, self.parameters.compactness)

    def set_progress_total(self, total: int) -> None:
        self.progress_total = total
        self.progress = []

    def set_progress_done(self, done: int) -> None:
        self.progress.append(done)

    def acquire_source(self) -> SourceBuffer:
        left, top, right, bottom = self.extent
        region = self.canvas[max(top, 0):max(bottom, 0), max(left, 0):max(right, 0)]
        if region.size == 0:
            source = SourceBuffer(right - left, bottom - top, b"", 0, 4, (left, top))
        else:
            source = SourceBuffer.from_array(region, (left, top), self.row_padding)
        self.outstanding += 1
        return source

    def write_destination(self, output: np.ndarray, offset: Tuple[int, int]) -> None:
        x, y = offset
        height, width = output.shape[:2]
        if y + height > self.destination.shape[0] or x + width > self.destination.shape[1]:
            raise ResourceError(f"Result {width}x{height} does not fit at {offset}")
        self.destination[y:y + height, x:x + width] = output
        self.writes += 1

    def release_source(self, source: SourceBuffer) -> None:
        self.outstanding -= 1
