"""Tests for performance tier selection."""
import math

import pytest

from plotcube.errors import ValidationError
from plotcube.tiers import PerformanceTier, select_tier

RECORD_COUNTS = [
    0, 1_000, 5_000, 5_001, 7_500, 7_501, 10_000, 10_001, 20_000, 20_001,
    25_000, 25_001, 50_000, 50_001, 100_000, 100_001, 500_000,
]


class TestTierBoundaries:

    def test_small_dataset_uses_default_tier(self):
        tier = select_tier(5_000)
        assert tier.name == "default"
        assert tier.sampling_factor == 1.0
        assert tier.backend == "svg"
        assert tier.animation_duration == 750
        assert not tier.aggregation_enabled

    def test_standard_tier_enables_webgl_above_7500(self):
        assert select_tier(5_001).name == "standard"
        assert select_tier(7_500).use_webgl is False
        assert select_tier(7_501).use_webgl is True
        assert select_tier(7_501).sampling_factor == 1.0

    def test_high_tier_sampling_and_aggregation(self):
        light = select_tier(10_001)
        assert light.name == "high"
        assert light.sampling_factor == 0.8
        assert not light.aggregation_enabled

        aggregating = select_tier(20_001)
        assert aggregating.aggregation_enabled
        assert aggregating.max_render_points == 35_000
        assert aggregating.sampling_factor == 0.8
        assert not aggregating.should_aggregate(20_001)
        assert select_tier(40_000).should_aggregate(40_000)

        heavy = select_tier(25_001)
        assert heavy.sampling_factor == 0.6

    def test_extreme_tier(self):
        tier = select_tier(50_001)
        assert tier.name == "extreme"
        assert tier.sampling_factor == 0.4
        assert tier.max_render_points == 35_000
        assert tier.animation_duration == 150

    def test_ultra_tier(self):
        tier = select_tier(100_001)
        assert tier.name == "ultra"
        assert tier.sampling_factor == 0.25
        assert tier.aggregation_threshold == 50_000
        assert tier.max_render_points == 25_000
        assert tier.use_webgl is True
        assert tier.backend == "webgl"
        assert tier.animation_duration == 100


class TestOverrides:

    def test_extreme_override_forces_ultra(self):
        assert select_tier(10, extreme_override=True).name == "ultra"

    @pytest.mark.parametrize(
        "level, expected",
        [("ultra", "ultra"), ("extreme", "extreme"), ("optimized", "high")],
    )
    def test_forced_level(self, level, expected):
        assert select_tier(10, forced_level=level).name == expected

    def test_normal_level_does_not_lower_tier(self):
        assert select_tier(60_000, forced_level="normal").name == "extreme"

    def test_forced_small_dataset_is_not_sampled(self):
        tier = select_tier(100, forced_level="ultra")
        assert not tier.should_sample(100)
        assert not tier.should_aggregate(100)

    def test_unknown_level_raises(self):
        with pytest.raises(ValidationError):
            select_tier(10, forced_level="ludicrous")

    def test_negative_count_raises(self):
        with pytest.raises(ValidationError):
            select_tier(-1)


class TestMonotonicity:

    def test_sampling_factor_never_increases(self):
        factors = [select_tier(n).sampling_factor for n in RECORD_COUNTS]
        for smaller, larger in zip(factors, factors[1:]):
            assert smaller >= larger

    def test_aggregation_never_switches_off(self):
        enabled = [select_tier(n).should_aggregate(n) for n in RECORD_COUNTS]
        first_enabled = enabled.index(True)
        assert all(enabled[first_enabled:])
        assert not any(enabled[:first_enabled])

    def test_bucket_target_never_grows(self):
        targets = [
            select_tier(n).max_render_points or math.inf for n in RECORD_COUNTS
        ]
        for smaller, larger in zip(targets, targets[1:]):
            assert smaller >= larger

    def test_threshold_never_grows_while_escalating_to_extreme(self):
        thresholds = [
            select_tier(n).aggregation_threshold or math.inf
            for n in RECORD_COUNTS
            if n <= 100_000
        ]
        for smaller, larger in zip(thresholds, thresholds[1:]):
            assert smaller >= larger

    def test_aggregating_tiers_always_aggregate_their_own_range(self):
        for n in RECORD_COUNTS:
            tier = select_tier(n)
            if n > 35_000:
                assert tier.should_aggregate(n)

    def test_escalation_never_makes_aggregation_finer(self):
        high = select_tier(50_000)
        extreme = select_tier(50_001)
        ultra = select_tier(100_001)
        assert high.max_render_points >= extreme.max_render_points >= ultra.max_render_points

    def test_selection_is_pure(self):
        assert select_tier(42_000) == select_tier(42_000)


class TestPerformanceTier:

    def test_invalid_sampling_factor_rejected(self):
        with pytest.raises(ValueError):
            PerformanceTier(name="default", sampling_factor=0)

    def test_should_sample_respects_threshold(self):
        tier = select_tier(60_000)
        assert tier.should_sample(25_001)
        assert not tier.should_sample(25_000)
