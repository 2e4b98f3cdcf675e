"""End-to-end tests for the data-reduction pipeline and its background runner."""
import logging
import threading

import attrs
import plotly.graph_objects as go
import pytest

from plotcube.commands import ChartCommands
from plotcube.config import ChartConfig
from plotcube.errors import PipelineCancelled, RunnerError, ValidationError
from plotcube.pipeline import CancellationToken, PipelineRunner, ReductionMetrics, run_pipeline
from plotcube.types import ChartKind, MissingValuePolicy


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scatter_config():
    return ChartConfig(x_field="x", y_field="y", z_field="z", respect_load_delay=False)


@pytest.fixture
def bar_config():
    return ChartConfig(
        x_field="x", y_field="y", z_field="z", chart_kind="bar3d", respect_load_delay=False
    )


def synthetic_records(count):
    return [{"x": i, "y": (7 * i) % 1000, "z": (13 * i) % 997} for i in range(count)]


def spread_records(count):
    """Records that each occupy their own cell of a 159-per-axis aggregation grid."""
    return [{"x": i, "y": i % 159, "z": (i // 159) % 159} for i in range(count)]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestChartConfig:

    def test_string_values_are_converted(self):
        config = ChartConfig(
            x_field="a",
            y_field="b",
            z_field="c",
            chart_kind="mesh3d",
            forced_performance_level="extreme",
            missing_value_policy="index",
        )
        assert config.chart_kind is ChartKind.MESH_3D
        assert config.missing_value_policy is MissingValuePolicy.INDEX
        assert config.fields == ("a", "b", "c")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chart_kind": "pie3d"},
            {"forced_performance_level": "turbo"},
            {"missing_value_policy": "random"},
            {"x_field": ""},
            {"bar_width": 0},
        ],
    )
    def test_invalid_values(self, overrides):
        values = dict(x_field="x", y_field="y", z_field="z")
        values.update(overrides)
        with pytest.raises(ValidationError):
            ChartConfig(**values)


# ---------------------------------------------------------------------------
# Pipeline runs
# ---------------------------------------------------------------------------


class TestRunPipeline:

    def test_categorical_bar_chart(self, bar_records, bar_config):
        result = run_pipeline(bar_records, bar_config)

        assert result.tier.name == "default"
        assert len(result.traces) == 4
        assert sum(isinstance(trace, go.Mesh3d) for trace in result.traces) == 3
        assert result.schema.x_categories.values == ("A", "B")
        assert result.schema.y_categories.values == ("R1", "R2")
        assert [point.coordinates for point in result.points] == [
            (0.0, 0.0, 10.0),
            (0.0, 1.0, 20.0),
            (1.0, 0.0, 5.0),
        ]
        assert list(result.layout.scene.xaxis.ticktext) == ["A", "B"]
        assert result.metrics.reduction_percentage == 0.0

    def test_ultra_tier_reduction(self, scatter_config):
        result = run_pipeline(spread_records(120_000), scatter_config)
        metrics = result.metrics

        assert result.tier.name == "ultra"
        assert result.tier.sampling_factor == 0.25
        assert metrics.backend == "webgl"
        assert metrics.original_point_count == 120_000
        assert not metrics.aggregation_applied
        assert metrics.sampling_applied
        assert metrics.rendered_point_count == pytest.approx(30_000, rel=0.01)
        assert metrics.reduction_percentage == pytest.approx(75.0, abs=0.25)
        assert len(result.traces) == 1
        assert len(result.traces[0].x) == metrics.rendered_point_count
        # Level-of-detail markers
        assert result.traces[0].marker.size == 4

    def test_identical_points_collapse(self, scatter_config):
        records = [{"x": 1, "y": 1, "z": 1}] * 60_000
        result = run_pipeline(records, scatter_config)

        assert result.tier.name == "extreme"
        assert len(result.points) == 1
        point = result.points[0]
        assert point.coordinates == (1.0, 1.0, 1.0)
        assert point.count == 60_000
        assert result.metrics.aggregation_applied
        assert not result.metrics.sampling_applied

    def test_extreme_tier_aggregates_along_one_axis(self, scatter_config):
        records = [{"x": i, "y": 0, "z": 0} for i in range(60_000)]
        result = run_pipeline(records, scatter_config)

        # ceil(sqrt(35,000)) cells along x, one cell along y and z
        assert result.metrics.rendered_point_count == 188
        assert result.metrics.aggregation_applied
        assert not result.metrics.sampling_applied
        assert sum(point.count for point in result.points) == 60_000

    def test_escalating_to_extreme_never_refines_aggregation(self, scatter_config):
        high = run_pipeline([{"x": i, "y": 0, "z": 0} for i in range(50_000)], scatter_config)
        extreme = run_pipeline([{"x": i, "y": 0, "z": 0} for i in range(50_001)], scatter_config)

        assert high.tier.name == "high"
        assert extreme.tier.name == "extreme"
        assert high.metrics.aggregation_applied
        assert extreme.metrics.rendered_point_count <= high.metrics.rendered_point_count

    def test_numeric_string_categories_in_bar_mode(self, bar_config):
        records = [{"x": "10", "y": "Q1", "z": 3}, {"x": "1", "y": "Q1", "z": 4}, {"x": "5", "y": "Q2", "z": 5}]
        result = run_pipeline(records, bar_config)

        assert [point.x for point in result.points] == [0.0, 1.0, 2.0]
        assert list(result.layout.scene.xaxis.ticktext) == ["10", "1", "5"]

    def test_out_of_range_integers_follow_policy(self, scatter_config):
        result = run_pipeline([{"x": 10**400, "y": 1, "z": 2}], scatter_config)
        assert result.points[0].coordinates == (0.0, 1.0, 2.0)

    def test_forced_high_tier_sampling(self, scatter_config):
        config = attrs.evolve(scatter_config, forced_performance_level="optimized")
        result = run_pipeline(synthetic_records(15_000), config)

        assert result.tier.name == "high"
        assert result.metrics.rendered_point_count == 12_000
        assert result.metrics.reduction_percentage == pytest.approx(20.0)
        assert not result.metrics.aggregation_applied

    def test_forced_level_on_small_dataset(self, scatter_config):
        config = attrs.evolve(scatter_config, forced_performance_level="ultra")
        result = run_pipeline(synthetic_records(500), config)

        assert result.tier.name == "ultra"
        assert result.metrics.rendered_point_count == 500

    def test_empty_input(self, scatter_config):
        result = run_pipeline([], scatter_config)

        assert result.is_empty
        assert result.traces == []
        assert result.metrics.original_point_count == 0
        assert result.metrics.reduction_percentage == 0.0
        assert result.layout.annotations[0].text == "No data"

    def test_annotation(self, bar_records, bar_config):
        result = run_pipeline(bar_records, bar_config)
        assert result.layout.annotations[0].text == (
            "Interactive 3D bar visualization. Showing 3 of 3 points (default tier)"
        )

    def test_records_are_not_modified(self, bar_records, bar_config):
        snapshot = [dict(record) for record in bar_records]
        run_pipeline(bar_records, bar_config)
        assert bar_records == snapshot

    def test_missing_values_follow_policy(self, scatter_config):
        records = [{"x": 1, "y": None, "z": 3}, {"x": 2, "y": "n/a", "z": 4}, {"x": 3, "y": 5, "z": 6}]

        zero = run_pipeline(records, scatter_config)
        assert [point.y for point in zero.points] == [0.0, 0.0, 5.0]

        index = run_pipeline(records, attrs.evolve(scatter_config, missing_value_policy="index"))
        assert [point.y for point in index.points] == [0.0, 1.0, 5.0]

    def test_rejected_records_are_logged(self, scatter_config, caplog):
        records = [{"x": 1, "y": None, "z": 3}, {"x": 3, "y": 5, "z": 6}]
        config = attrs.evolve(scatter_config, missing_value_policy="reject")

        with caplog.at_level(logging.WARNING, logger="plotcube.pipeline"):
            result = run_pipeline(records, config)

        assert len(result.points) == 1
        assert result.metrics.original_point_count == 2
        assert "Dropped 1 of 2 records" in caplog.text

    def test_runs_are_deterministic(self, scatter_config):
        records = synthetic_records(30_000)
        first = run_pipeline(records, scatter_config)
        second = run_pipeline(records, scatter_config)
        assert [p.coordinates for p in first.points] == [p.coordinates for p in second.points]

    def test_to_figure(self, bar_records, bar_config):
        figure = run_pipeline(bar_records, bar_config).to_figure()
        assert isinstance(figure, go.Figure)
        assert len(figure.data) == 4

    def test_commands_are_exposed(self, bar_records, bar_config):
        commands = ChartCommands(on_rotate_toggle=lambda: None)
        result = run_pipeline(bar_records, bar_config, commands=commands)
        assert result.commands is commands
        assert result.layout.updatemenus[0].buttons[0].name == "rotate_toggle"

    def test_cancelled_token(self, bar_records, bar_config):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(PipelineCancelled):
            run_pipeline(bar_records, bar_config, token=token)


class TestReductionMetrics:

    def test_compute(self):
        metrics = ReductionMetrics.compute(1000, 250, False, True, "webgl")
        assert metrics.reduction_percentage == pytest.approx(75.0)
        assert metrics.describe("ultra") == "Showing 250 of 1,000 points (75.0% reduction, ultra tier)"

    def test_no_data(self):
        metrics = ReductionMetrics.compute(0, 0, False, False, "svg")
        assert metrics.reduction_percentage == 0.0
        assert metrics.describe() == "No data"


# ---------------------------------------------------------------------------
# Background runner
# ---------------------------------------------------------------------------


class TestPipelineRunner:

    def test_result_without_submission(self):
        with PipelineRunner() as runner:
            assert runner.result() is None
            assert runner.latest is None

    def test_newest_submission_wins(self, bar_records, bar_config):
        delivered = []
        with PipelineRunner(on_result=delivered.append) as runner:
            runner.submit(synthetic_records(20_000), attrs.evolve(bar_config, chart_kind="scatter3d"))
            runner.submit(bar_records, bar_config)
            result = runner.result(timeout=60)

        assert runner.generation == 2
        assert result is runner.latest
        assert result.tier.name == "default"
        assert len(result.traces) == 4
        assert delivered[-1] is result

    def test_submitted_records_are_copied(self, bar_records, bar_config):
        gate = threading.Event()
        with PipelineRunner() as runner:
            # Hold the worker so the second submission is queued behind it
            runner._executor.submit(gate.wait)
            runner.submit(bar_records, bar_config)
            bar_records.append({"x": "C", "y": "R3", "z": 1})
            gate.set()
            result = runner.result(timeout=60)
        assert result.metrics.original_point_count == 3

    def test_submit_after_shutdown(self, bar_records, bar_config):
        runner = PipelineRunner()
        runner.shutdown()
        with pytest.raises(RunnerError):
            runner.submit(bar_records, bar_config)
