"""
Performance tier selection.

A tier bundles every knob the pipeline uses to bound render cost for a dataset
of a given size: when to aggregate, when and how hard to sample, how big the
processing chunks are and which rendering backend to hint at.
"""

import logging
import typing

import attrs

from plotcube.errors import ValidationError
from plotcube.types import Backend, PerformanceLevel, TierName

__all__ = ["PerformanceTier", "select_tier"]

logger = logging.getLogger(__name__)


ULTRA_RECORD_COUNT = 100_000
EXTREME_RECORD_COUNT = 50_000
HIGH_RECORD_COUNT = 10_000
HIGH_HEAVY_SAMPLING_COUNT = 25_000
HIGH_AGGREGATION_COUNT = 20_000
HIGH_BUCKET_TARGET = 35_000
STANDARD_RECORD_COUNT = 5_000
STANDARD_WEBGL_COUNT = 7_500


@attrs.frozen
class PerformanceTier:
    """Named performance configuration chosen from dataset size."""

    name: TierName
    """Tier name, one of 'default', 'standard', 'high', 'extreme', 'ultra'."""
    use_webgl: bool = False
    """Whether the renderer should use a WebGL backend."""
    max_points_before_sampling: typing.Optional[int] = None
    """Sampling only runs when more points than this remain. None disables sampling."""
    sampling_factor: float = attrs.field(
        default=1.0,
        validator=attrs.validators.and_(attrs.validators.gt(0), attrs.validators.le(1)),
    )
    """Fraction of points kept by systematic sampling (1.0 keeps everything)."""
    aggregation_threshold: typing.Optional[int] = None
    """Aggregation only runs when more points than this are present. None disables aggregation."""
    max_render_points: typing.Optional[int] = None
    """Target bucket count used when aggregating."""
    chunk_size: int = attrs.field(default=1000, validator=attrs.validators.ge(1))
    """Number of records normalized between cooperative yield points."""
    load_delay: float = attrs.field(default=0.0, validator=attrs.validators.ge(0))
    """Seconds to pause between chunks so other work can run."""
    animation_duration: int = 750
    """Suggested transition duration for the renderer, in milliseconds."""
    enable_lod: bool = False
    """Whether the renderer should use level-of-detail simplification."""

    @property
    def backend(self) -> Backend:
        return "webgl" if self.use_webgl else "svg"

    @property
    def aggregation_enabled(self) -> bool:
        return (
            self.aggregation_threshold is not None
            and self.max_render_points is not None
        )

    @property
    def sampling_enabled(self) -> bool:
        return self.sampling_factor < 1.0 and self.max_points_before_sampling is not None

    def should_aggregate(self, point_count: int) -> bool:
        return self.aggregation_enabled and point_count > self.aggregation_threshold  # type: ignore[operator]

    def should_sample(self, point_count: int) -> bool:
        return self.sampling_enabled and point_count > self.max_points_before_sampling  # type: ignore[operator]


def _ultra_tier() -> PerformanceTier:
    return PerformanceTier(
        name="ultra",
        use_webgl=True,
        max_points_before_sampling=50_000,
        sampling_factor=0.25,
        aggregation_threshold=50_000,
        max_render_points=25_000,
        chunk_size=20_000,
        load_delay=0.001,
        animation_duration=100,
        enable_lod=True,
    )


def _extreme_tier() -> PerformanceTier:
    return PerformanceTier(
        name="extreme",
        use_webgl=True,
        max_points_before_sampling=25_000,
        sampling_factor=0.4,
        aggregation_threshold=35_000,
        max_render_points=35_000,
        chunk_size=10_000,
        load_delay=0.001,
        animation_duration=150,
        enable_lod=True,
    )


def _high_tier(record_count: int) -> PerformanceTier:
    aggregate = record_count > HIGH_AGGREGATION_COUNT
    return PerformanceTier(
        name="high",
        use_webgl=True,
        max_points_before_sampling=10_000,
        sampling_factor=0.6 if record_count > HIGH_HEAVY_SAMPLING_COUNT else 0.8,
        aggregation_threshold=HIGH_BUCKET_TARGET if aggregate else None,
        max_render_points=HIGH_BUCKET_TARGET if aggregate else None,
        chunk_size=5_000,
        animation_duration=300,
    )


def _standard_tier(record_count: int) -> PerformanceTier:
    return PerformanceTier(
        name="standard",
        use_webgl=record_count > STANDARD_WEBGL_COUNT,
        chunk_size=2_500,
        animation_duration=500,
    )


def _default_tier() -> PerformanceTier:
    return PerformanceTier(name="default", chunk_size=1_000, animation_duration=750)


def select_tier(
    record_count: int,
    forced_level: typing.Optional[typing.Union[PerformanceLevel, str]] = None,
    extreme_override: bool = False,
) -> PerformanceTier:
    """
    Select the performance tier for a dataset.

    Rules are checked in order and the first match wins:

    - more than 100,000 records, `extreme_override`, or a forced 'ultra' level -> ultra
    - more than 50,000 records or a forced 'extreme' level -> extreme
    - more than 10,000 records or a forced 'optimized' level -> high
    - more than 5,000 records -> standard
    - otherwise -> default

    The sampling factor never increases, and aggregation never becomes less aggressive,
    as the record count grows: the bucket target never grows, and once a tier
    aggregates a dataset every larger dataset is aggregated too.

    :param record_count: Number of input records
    :param forced_level: Optional performance level to force ('normal', 'optimized', 'extreme', 'ultra')
    :param extreme_override: Force the most aggressive tier
    :return: The selected `PerformanceTier`
    """
    if record_count < 0:
        raise ValidationError("Record count cannot be negative")

    try:
        level = PerformanceLevel(forced_level) if forced_level is not None else None
    except ValueError as exc:
        raise ValidationError(f"Unknown performance level {forced_level!r}") from exc

    if (
        record_count > ULTRA_RECORD_COUNT
        or extreme_override
        or level is PerformanceLevel.ULTRA
    ):
        tier = _ultra_tier()
    elif record_count > EXTREME_RECORD_COUNT or level is PerformanceLevel.EXTREME:
        tier = _extreme_tier()
    elif record_count > HIGH_RECORD_COUNT or level is PerformanceLevel.OPTIMIZED:
        tier = _high_tier(record_count)
    elif record_count > STANDARD_RECORD_COUNT:
        tier = _standard_tier(record_count)
    else:
        tier = _default_tier()

    logger.debug(
        f"Selected '{tier.name}' tier for {record_count} records "
        f"(forced_level={level}, extreme_override={extreme_override})"
    )
    return tier
