"""
dssim engine - multi-scale SSIM comparison with deterministic parallelism.

Work is split into independent tasks:
- one pyramid build per (image, channel)
- one statistics + SSIM task per (level, channel)
- in batch mode, one task per base/candidate pair

Tasks only read shared, read-only planes and return their own results.
Aggregation runs after the join and walks levels and channels in a fixed
order, so scores are bit-identical for any worker count.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, Executor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .color import check_dimensions, get_converter
from .config import DssimConfig
from .diffmap import render_difference_map
from .errors import ConfigError, DegenerateComputation, DimensionMismatch, DssimError
from .pyramid import ChannelPyramid, build_pyramid
from .ssim import aggregate, combine_ssim, mean_ssim
from .stats import StatsWorkspace, compute_window_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ComparisonResult:
    """Outcome of comparing one image pair"""
    dissimilarity: float
    similarity: float
    level_scores: Tuple[Tuple[float, ...], ...]
    difference_map: Optional[np.ndarray] = None

    def __float__(self) -> float:
        return self.dissimilarity

    @property
    def levels(self) -> int:
        return len(self.level_scores)


@dataclass
class BatchEntry:
    """One candidate's outcome in a batch; exactly one of result/error is set"""
    index: int
    label: str
    result: Optional[ComparisonResult] = None
    error: Optional[DssimError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PreparedImage:
    """An image converted to channel planes with pyramids built, reusable across comparisons"""

    def __init__(self, pyramids: List[ChannelPyramid], label: str = ""):
        self.pyramids = pyramids
        self.label = label

    @property
    def height(self) -> int:
        return self.pyramids[0][0].shape[0]

    @property
    def width(self) -> int:
        return self.pyramids[0][0].shape[1]

    @property
    def levels(self) -> int:
        return len(self.pyramids[0])

    @property
    def channels(self) -> int:
        return len(self.pyramids)


ImageInput = Union[np.ndarray, PreparedImage]


def _level_task(plane_a: np.ndarray, plane_b: np.ndarray, config: DssimConfig,
                keep_map: bool, label: str) -> Tuple[float, Optional[np.ndarray]]:
    """Statistics + SSIM for one (level, channel); returns (mean SSIM, map or None)"""
    # Arena is allocated per running task, not per submitted task
    stats = compute_window_stats(plane_a, plane_b, config, StatsWorkspace(plane_a.shape))
    ssim_map = combine_ssim(stats, config)
    score = mean_ssim(ssim_map, label)
    if keep_map:
        ssim_map.flags.writeable = False
        return score, ssim_map
    return score, None


class Dssim:
    """Multi-scale SSIM comparison engine"""

    def __init__(self, config: Optional[DssimConfig] = None):
        self.config = config or DssimConfig()
        self.converter = get_converter(self.config.color_space)
        if len(self.config.channel_weights) < self.converter.channel_count:
            raise ConfigError(
                f"Color space '{self.converter.name}' has {self.converter.channel_count} channels "
                f"but only {len(self.config.channel_weights)} channel weights are configured"
            )

    def _pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.config.resolved_workers)

    def _prepare(self, pixels: np.ndarray, label: str, pool: Executor,
                 pixel_order: str = "RGB") -> PreparedImage:
        planes = self.converter.planes(pixels, pixel_order)
        futures = [pool.submit(build_pyramid, plane, self.config) for plane in planes]
        return PreparedImage([f.result() for f in futures], label)

    def create_image(self, pixels: np.ndarray, label: str = "", pixel_order: str = "RGB") -> PreparedImage:
        """
        Convert a decoded raster and build its pyramids.

        The returned PreparedImage can be compared against any number of
        candidates without repeating the conversion.
        """
        pixels = np.asarray(pixels)
        check_dimensions(pixels, pixels)
        with self._pool() as pool:
            return self._prepare(pixels, label, pool, pixel_order)

    def _ensure_prepared(self, image: ImageInput, label: str, pool: Executor) -> PreparedImage:
        if isinstance(image, PreparedImage):
            return image
        image = np.asarray(image)
        check_dimensions(image, image)
        return self._prepare(image, label, pool)

    def _compare_prepared(self, a: PreparedImage, b: PreparedImage, pool: Executor,
                          emit_map: bool) -> ComparisonResult:
        if (a.width, a.height) != (b.width, b.height):
            raise DimensionMismatch(f"Image sizes differ: {a.width}x{a.height} vs {b.width}x{b.height}")
        if a.channels != b.channels or a.levels != b.levels:
            raise ConfigError("Images were prepared with different configurations")

        start_time = time.time()
        futures = {}
        for level in range(a.levels):
            for channel in range(a.channels):
                futures[(level, channel)] = pool.submit(
                    _level_task,
                    a.pyramids[channel][level],
                    b.pyramids[channel][level],
                    self.config,
                    emit_map,
                    f"level {level}, channel {self.converter.channel_names[channel]}",
                )

        # Join, then reduce in canonical (level, channel) order
        outcomes: Dict[Tuple[int, int], Tuple[float, Optional[np.ndarray]]] = {
            key: future.result() for key, future in futures.items()
        }
        level_scores = tuple(
            tuple(outcomes[(level, channel)][0] for channel in range(a.channels))
            for level in range(a.levels)
        )
        similarity, dissimilarity = aggregate(level_scores, self.config)

        difference_map = None
        if emit_map:
            maps = [[outcomes[(level, channel)][1] for channel in range(a.channels)]
                    for level in range(a.levels)]
            difference_map = render_difference_map(maps, self.config)
            if not np.all(np.isfinite(difference_map)):
                raise DegenerateComputation("Difference map contains non-finite values")

        elapsed = time.time() - start_time
        logger.debug(f"Compared {a.label or 'A'} vs {b.label or 'B'}: {dissimilarity:.8f} "
                     f"({a.levels} levels, took {elapsed:.3f}s)")
        return ComparisonResult(
            dissimilarity=dissimilarity,
            similarity=similarity,
            level_scores=level_scores,
            difference_map=difference_map,
        )

    def compare(self, a: ImageInput, b: ImageInput, emit_map: Optional[bool] = None) -> ComparisonResult:
        """
        Compare two images.

        Args:
            a: base image, a decoded raster or a PreparedImage
            b: candidate image, a decoded raster or a PreparedImage
            emit_map: render the difference map; defaults to config.emit_map

        Returns:
            ComparisonResult with dissimilarity 0 for identical images

        Raises:
            EmptyImage, DimensionMismatch, UnsupportedPixelFormat,
            DegenerateComputation
        """
        if emit_map is None:
            emit_map = self.config.emit_map
        if not isinstance(a, PreparedImage) and not isinstance(b, PreparedImage):
            check_dimensions(np.asarray(a), np.asarray(b))
        with self._pool() as pool:
            prepared_a = self._ensure_prepared(a, "A", pool)
            prepared_b = self._ensure_prepared(b, "B", pool)
            return self._compare_prepared(prepared_a, prepared_b, pool, emit_map)

    def compare_batch(self, base: ImageInput, candidates: Sequence[ImageInput],
                      labels: Optional[Sequence[str]] = None,
                      emit_map: Optional[bool] = None) -> List[BatchEntry]:
        """
        Compare one base image against several candidates.

        Each pair runs as an independent task. A failing candidate produces
        an entry with its error while the others are still scored. Entries
        are returned in candidate order.
        """
        if emit_map is None:
            emit_map = self.config.emit_map
        if labels is None:
            labels = [f"candidate {i + 1}" for i in range(len(candidates))]
        if len(labels) != len(candidates):
            raise ValueError(f"{len(labels)} labels given for {len(candidates)} candidates")

        workers = self.config.resolved_workers
        with ThreadPoolExecutor(max_workers=workers) as unit_pool:
            if isinstance(base, PreparedImage):
                prepared_base = base
            else:
                base = np.asarray(base)
                check_dimensions(base, base)
                prepared_base = self._prepare(base, "base", unit_pool)

            def run_pair(candidate: ImageInput, label: str) -> ComparisonResult:
                if not isinstance(candidate, PreparedImage):
                    candidate = np.asarray(candidate)
                    check_dimensions(candidate, candidate)
                    height, width = candidate.shape[:2]
                    if (width, height) != (prepared_base.width, prepared_base.height):
                        raise DimensionMismatch(
                            f"Image sizes differ: {prepared_base.width}x{prepared_base.height} "
                            f"vs {width}x{height}"
                        )
                prepared = self._ensure_prepared(candidate, label, unit_pool)
                return self._compare_prepared(prepared_base, prepared, unit_pool, emit_map)

            # Pair tasks wait on unit tasks, so they get their own pool
            with ThreadPoolExecutor(max_workers=min(workers, max(1, len(candidates)))) as pair_pool:
                futures = [pair_pool.submit(run_pair, candidate, label)
                           for candidate, label in zip(candidates, labels)]
                entries = []
                for index, (future, label) in enumerate(zip(futures, labels)):
                    try:
                        entries.append(BatchEntry(index=index, label=label, result=future.result()))
                    except DssimError as e:
                        if e.source is None:
                            e.source = label
                        logger.debug(f"Comparison failed for {label}: {e.describe()}")
                        entries.append(BatchEntry(index=index, label=label, error=e))
        return entries


def compare(a: ImageInput, b: ImageInput, config: Optional[DssimConfig] = None,
            emit_map: Optional[bool] = None) -> ComparisonResult:
    """Convenience function to compare two images with a one-off engine"""
    return Dssim(config).compare(a, b, emit_map=emit_map)


def compare_batch(base: ImageInput, candidates: Sequence[ImageInput],
                  config: Optional[DssimConfig] = None,
                  labels: Optional[Sequence[str]] = None) -> List[BatchEntry]:
    """Convenience function to compare one base image against several candidates"""
    return Dssim(config).compare_batch(base, candidates, labels=labels)
