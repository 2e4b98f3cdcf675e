"""
The adaptive 3D data-reduction pipeline.

Stages run strictly forward: tier selection, schema inference and axis normalization
(in cooperative chunks), spatial aggregation, systematic sampling, and trace assembly.
Each run is a pure function of its records and configuration.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
import logging
import threading
import time
import typing

import attrs
import plotly.graph_objects as go
from plotly.basedatatypes import BaseTraceType
from typing_extensions import Self

from plotcube.commands import ChartCommands
from plotcube.config import ChartConfig
from plotcube.errors import PipelineCancelled, RunnerError
from plotcube.records import DatasetSchema, Point3D, infer_schema, normalize_records
from plotcube.reduction import aggregate, sample
from plotcube.tiers import PerformanceTier, select_tier
from plotcube.types import Backend, MissingValuePolicy, Record
from plotcube.utils import chunked
from plotcube.visualization.base import get_palette, get_theme
from plotcube.visualization.traces import TraceContext, assemble, build_layout

__all__ = [
    "ReductionMetrics",
    "PipelineResult",
    "CancellationToken",
    "run_pipeline",
    "PipelineRunner",
]

logger = logging.getLogger(__name__)

LOD_MARKER_SIZE = 4
DEFAULT_MARKER_SIZE = 8


@attrs.frozen
class ReductionMetrics:
    """Summary of the reduction applied by a pipeline run, for the UI layer."""

    original_point_count: int
    rendered_point_count: int
    reduction_percentage: float
    """Share of the original points that were not rendered, in percent."""
    aggregation_applied: bool
    sampling_applied: bool
    backend: Backend

    @classmethod
    def compute(
        cls,
        original: int,
        rendered: int,
        aggregation_applied: bool,
        sampling_applied: bool,
        backend: Backend,
    ) -> Self:
        reduction = (1 - rendered / original) * 100 if original > 0 else 0.0
        return cls(
            original_point_count=original,
            rendered_point_count=rendered,
            reduction_percentage=reduction,
            aggregation_applied=aggregation_applied,
            sampling_applied=sampling_applied,
            backend=backend,
        )

    def describe(self, tier_name: typing.Optional[str] = None) -> str:
        """Human-readable reduction summary, e.g. for a chart annotation."""
        if self.original_point_count == 0:
            return "No data"
        text = (
            f"Showing {self.rendered_point_count:,} of {self.original_point_count:,} points"
        )
        details = []
        if self.rendered_point_count < self.original_point_count:
            details.append(f"{self.reduction_percentage:.1f}% reduction")
        if tier_name is not None:
            details.append(f"{tier_name} tier")
        if details:
            text += f" ({', '.join(details)})"
        return text


@attrs.frozen
class PipelineResult:
    """Everything a pipeline run produces for the renderer and the UI layer."""

    traces: typing.List[BaseTraceType]
    """Renderer-ready traces. Empty when there is no data."""
    layout: go.Layout
    """Layout descriptor with axis titles, camera, theme colors and annotation."""
    metrics: ReductionMetrics
    tier: PerformanceTier
    schema: DatasetSchema
    points: typing.List[Point3D] = attrs.field(repr=False)
    """The rendered points, after reduction."""
    commands: typing.Optional[ChartCommands] = attrs.field(default=None, repr=False)
    """Control command handle the renderer should dispatch through."""

    @property
    def is_empty(self) -> bool:
        return not self.traces

    def to_figure(self) -> go.Figure:
        return go.Figure(data=self.traces, layout=self.layout)


class CancellationToken:
    """Cooperative cancellation flag checked by a pipeline run between chunks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("Pipeline run was cancelled")


def _normalize_in_chunks(
    records: typing.Sequence[Record],
    config: ChartConfig,
    schema: DatasetSchema,
    tier: PerformanceTier,
    token: typing.Optional[CancellationToken],
) -> typing.List[Point3D]:
    points: typing.List[Point3D] = []
    chunk_count = -(-len(records) // tier.chunk_size)
    for number, chunk in enumerate(chunked(records, tier.chunk_size)):
        if token is not None:
            token.raise_if_cancelled()
        points.extend(
            normalize_records(
                chunk,
                config.x_field,
                config.y_field,
                config.z_field,
                config.chart_kind,
                schema=schema,
                policy=config.missing_value_policy,
                start_index=number * tier.chunk_size,
            )
        )
        is_last = number == chunk_count - 1
        if not is_last:
            logger.debug(f"Normalized chunk {number + 1}/{chunk_count}")
            if config.respect_load_delay and tier.load_delay > 0:
                time.sleep(tier.load_delay)
    return points


def run_pipeline(
    records: typing.Sequence[Record],
    config: ChartConfig,
    commands: typing.Optional[ChartCommands] = None,
    token: typing.Optional[CancellationToken] = None,
) -> PipelineResult:
    """
    Prepare records for interactive 3D rendering.

    Selects a performance tier from the record count, normalizes the configured fields
    to numeric coordinates, aggregates and samples when the tier calls for it, and
    assembles the traces and layout. The input records are never modified.

    Malformed or extreme data never raises: missing values follow the configured
    policy and an empty input yields an empty trace set.

    :param records: Parsed input rows
    :param config: Chart configuration
    :param commands: Optional control command handle, exposed as layout buttons
    :param token: Optional cancellation token, checked between processing chunks
    :return: The `PipelineResult`
    :raises PipelineCancelled: If `token` is cancelled before the run completes
    """
    started = time.perf_counter()
    original_count = len(records)
    tier = select_tier(
        original_count,
        forced_level=config.forced_performance_level,
        extreme_override=config.extreme_override,
    )
    schema = infer_schema(
        records, config.x_field, config.y_field, config.z_field, config.chart_kind
    )
    points = _normalize_in_chunks(records, config, schema, tier, token)

    rejected = original_count - len(points)
    if rejected:
        logger.warning(
            f"Dropped {rejected} of {original_count} records with missing or "
            f"non-numeric axis values (policy={MissingValuePolicy.REJECT.value})"
        )

    aggregation_applied = False
    if tier.should_aggregate(len(points)):
        if token is not None:
            token.raise_if_cancelled()
        reduced = aggregate(points, tier.max_render_points)  # type: ignore[arg-type]
        aggregation_applied = len(reduced) < len(points)
        points = reduced

    sampling_applied = False
    if tier.should_sample(len(points)):
        if token is not None:
            token.raise_if_cancelled()
        reduced = sample(points, tier.sampling_factor)
        sampling_applied = len(reduced) < len(points)
        points = reduced

    if token is not None:
        token.raise_if_cancelled()

    metrics = ReductionMetrics.compute(
        original=original_count,
        rendered=len(points),
        aggregation_applied=aggregation_applied,
        sampling_applied=sampling_applied,
        backend=tier.backend,
    )
    context = TraceContext(
        palette=get_palette(config.palette_name),
        theme=get_theme(config.dark_mode),
        field_names=config.fields,
        title=config.title,
        bar_width=config.bar_width,
        bar_depth=config.bar_depth,
        marker_size=LOD_MARKER_SIZE if tier.enable_lod else DEFAULT_MARKER_SIZE,
    )
    traces = assemble(
        points,
        config.chart_kind,
        palette=context.palette,
        theme=context.theme,
        field_names=context.field_names,
        title=context.title,
        bar_width=context.bar_width,
        bar_depth=context.bar_depth,
        marker_size=context.marker_size,
    )

    if original_count == 0:
        annotation = "No data"
    else:
        kind_name = config.chart_kind.value.replace("3d", "")
        annotation = (
            f"Interactive 3D {kind_name} visualization. {metrics.describe(tier.name)}"
        )
    layout = build_layout(
        points,
        config.chart_kind,
        context,
        schema=schema,
        annotation=annotation,
        commands=commands,
        animation_duration=tier.animation_duration,
    )

    logger.info(
        f"Prepared {config.chart_kind.value} chart: {metrics.describe(tier.name)} "
        f"in {time.perf_counter() - started:.3f}s"
    )
    return PipelineResult(
        traces=traces,
        layout=layout,
        metrics=metrics,
        tier=tier,
        schema=schema,
        points=points,
        commands=commands,
    )


class PipelineRunner:
    """
    Runs pipelines on a background worker thread, keeping only the newest result.

    Every `submit` starts a new generation and cancels the run of the previous one. A
    superseded run stops at its next chunk boundary and its output is discarded, so
    `latest` always reflects the most recently submitted records and configuration.

    Usage:
    ```python
    with PipelineRunner(on_result=render) as runner:
        runner.submit(records, config)
        ...
        runner.submit(records, attrs.evolve(config, chart_kind="bar3d"))  # supersedes the first run
    ```
    """

    def __init__(
        self,
        on_result: typing.Optional[typing.Callable[[PipelineResult], None]] = None,
        thread_name_prefix: str = "plotcube-pipeline",
    ) -> None:
        """
        :param on_result: Called on the worker thread with each result that is still current
        :param thread_name_prefix: Name prefix for the worker thread
        """
        self.on_result = on_result
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=thread_name_prefix
        )
        self._lock = threading.Lock()
        self._generation = 0
        self._token: typing.Optional[CancellationToken] = None
        self._future: typing.Optional[Future] = None
        self._latest: typing.Optional[PipelineResult] = None
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> typing.Optional[PipelineResult]:
        """Result of the newest generation that completed, if any."""
        return self._latest

    def submit(
        self,
        records: typing.Sequence[Record],
        config: ChartConfig,
        commands: typing.Optional[ChartCommands] = None,
    ) -> Future:
        """
        Schedule a pipeline run, superseding any run still in progress.

        :param records: Parsed input rows. Copied so later caller changes do not leak in.
        :param config: Chart configuration
        :param commands: Optional control command handle
        :return: Future resolving to the result, or to None if the run was superseded
        """
        records = list(records)
        with self._lock:
            if self._closed:
                raise RunnerError("Cannot submit to a runner that has been shut down")
            if self._token is not None:
                self._token.cancel()
            self._generation += 1
            generation = self._generation
            token = CancellationToken()
            self._token = token
            future = self._executor.submit(
                self._run, generation, token, records, config, commands
            )
            self._future = future
        logger.debug(f"Submitted pipeline generation {generation}")
        return future

    def _run(
        self,
        generation: int,
        token: CancellationToken,
        records: typing.List[Record],
        config: ChartConfig,
        commands: typing.Optional[ChartCommands],
    ) -> typing.Optional[PipelineResult]:
        try:
            result = run_pipeline(records, config, commands=commands, token=token)
        except PipelineCancelled:
            logger.debug(f"Pipeline generation {generation} was superseded")
            return None

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding result of stale generation {generation}")
                return None
            self._latest = result
        if self.on_result is not None:
            self.on_result(result)
        return result

    def result(self, timeout: typing.Optional[float] = None) -> typing.Optional[PipelineResult]:
        """
        Wait for the newest submitted run and return its result.

        :param timeout: Seconds to wait, or None to wait indefinitely
        :return: The newest result, or None if nothing was submitted
        :raises RunnerError: If the run failed
        """
        future = self._future
        if future is None:
            return None
        try:
            future.result(timeout=timeout)
        except PipelineCancelled:
            pass
        except FutureTimeoutError:
            raise
        except Exception as exc:
            raise RunnerError(f"Pipeline run failed: {exc}") from exc
        return self._latest

    def cancel(self) -> None:
        """Cancel the run in progress, if any."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting work, cancel the run in progress and stop the worker.

        :param wait: Whether to block until the worker thread exits
        """
        with self._lock:
            self._closed = True
            if self._token is not None:
                self._token.cancel()
        self._executor.shutdown(wait=wait)
        logger.debug("Pipeline runner shut down")

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)
