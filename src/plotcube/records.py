"""
Axis normalization: turning flat input records into numeric, render-ready points.
"""

import logging
import math
import typing

import attrs
import numpy as np
from typing_extensions import Self

from plotcube.types import ChartKind, FieldKind, MissingValuePolicy, Record

__all__ = [
    "Point3D",
    "CategoryIndex",
    "DatasetSchema",
    "coerce_number",
    "infer_field_kind",
    "infer_schema",
    "normalize",
    "normalize_records",
]

logger = logging.getLogger(__name__)


@attrs.frozen(slots=True)
class Point3D:
    """A normalized, render-ready point."""

    x: float
    y: float
    z: float
    original_x: typing.Any = None
    """Raw x field value, kept for display. None for aggregated points."""
    original_y: typing.Any = None
    original_z: typing.Any = None
    index: int = 0
    """Row index of the source record (first member's index for aggregated points)."""
    count: int = 1
    """Number of points this point stands for."""
    aggregated: bool = False
    """Whether this point is the centroid of an aggregation bucket."""
    members: typing.Tuple["Point3D", ...] = ()
    """Up to three of the original member points, for tooltips."""

    @property
    def coordinates(self) -> typing.Tuple[float, float, float]:
        return self.x, self.y, self.z


def _is_missing(value: typing.Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (float, np.floating)):
        return not math.isfinite(value)
    return False


def coerce_number(value: typing.Any) -> typing.Optional[float]:
    """
    Read a value as a finite float.

    :param value: Raw field value
    :return: The finite float value, or None if the value is missing, non-numeric or non-finite
    """
    if isinstance(value, (bool, int, float, np.integer, np.floating)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@attrs.frozen
class CategoryIndex:
    """Stable mapping from distinct categorical values to contiguous indices."""

    values: typing.Tuple[typing.Any, ...]
    """Distinct values in first-seen order. The value at position `i` maps to `i`."""
    positions: typing.Mapping[typing.Any, int] = attrs.field(eq=False, repr=False)

    @classmethod
    def build(cls, values: typing.Iterable[typing.Any]) -> Self:
        positions: typing.Dict[typing.Any, int] = {}
        for value in values:
            if _is_missing(value):
                continue
            if value not in positions:
                positions[value] = len(positions)
        return cls(values=tuple(positions), positions=positions)

    def index_of(self, value: typing.Any) -> typing.Optional[int]:
        if _is_missing(value):
            return None
        return self.positions.get(value)

    @property
    def labels(self) -> typing.List[str]:
        return [str(value) for value in self.values]

    def __len__(self) -> int:
        return len(self.values)


@attrs.frozen
class DatasetSchema:
    """Per-axis field kinds inferred once for a whole dataset."""

    x_kind: FieldKind = FieldKind.NUMERIC
    y_kind: FieldKind = FieldKind.NUMERIC
    z_kind: FieldKind = FieldKind.NUMERIC
    x_categories: typing.Optional[CategoryIndex] = None
    y_categories: typing.Optional[CategoryIndex] = None

    def categories(self, axis: str) -> typing.Optional[CategoryIndex]:
        return {"x": self.x_categories, "y": self.y_categories}.get(axis)


def infer_field_kind(records: typing.Sequence[Record], field: str) -> FieldKind:
    """
    Infer whether a field holds numbers or categories.

    A field is categorical as soon as one present value is a string, even one that
    reads as a number ("2020", "5"). Only non-string values count as numeric.

    :param records: Dataset records
    :param field: Field name to inspect
    :return: The inferred `FieldKind`
    """
    for record in records:
        value = record.get(field)
        if isinstance(value, str) and not _is_missing(value):
            return FieldKind.CATEGORICAL
    return FieldKind.NUMERIC


def infer_schema(
    records: typing.Sequence[Record],
    x_field: str,
    y_field: str,
    z_field: str,
    chart_kind: typing.Union[ChartKind, str],
) -> DatasetSchema:
    """
    Infer the dataset schema used by the axis normalizer.

    Only bar charts map categorical x/y values to ordinal indices. Every other chart
    kind, and the z axis in all kinds, is read numerically.

    :param records: Dataset records
    :param x_field: Field mapped to the x axis
    :param y_field: Field mapped to the y axis
    :param z_field: Field mapped to the z axis
    :param chart_kind: Chart kind being prepared
    :return: A `DatasetSchema` with category indices for categorical axes
    """
    if ChartKind(chart_kind) is not ChartKind.BAR_3D:
        return DatasetSchema()

    x_kind = infer_field_kind(records, x_field)
    y_kind = infer_field_kind(records, y_field)
    x_categories = (
        CategoryIndex.build(record.get(x_field) for record in records)
        if x_kind is FieldKind.CATEGORICAL
        else None
    )
    y_categories = (
        CategoryIndex.build(record.get(y_field) for record in records)
        if y_kind is FieldKind.CATEGORICAL
        else None
    )
    logger.debug(
        f"Inferred schema for {len(records)} records: "
        f"{x_field}={x_kind.value}, {y_field}={y_kind.value}, {z_field}=numeric"
    )
    return DatasetSchema(
        x_kind=x_kind,
        y_kind=y_kind,
        x_categories=x_categories,
        y_categories=y_categories,
    )


def _axis_value(
    value: typing.Any,
    categories: typing.Optional[CategoryIndex],
) -> typing.Optional[float]:
    if categories is not None:
        position = categories.index_of(value)
        return float(position) if position is not None else None
    return coerce_number(value)


def normalize(
    record: Record,
    x_field: str,
    y_field: str,
    z_field: str,
    chart_kind: typing.Union[ChartKind, str],
    index: int = 0,
    schema: typing.Optional[DatasetSchema] = None,
    policy: MissingValuePolicy = MissingValuePolicy.ZERO,
) -> typing.Optional[Point3D]:
    """
    Map one record's configured fields to numeric coordinates.

    :param record: The input record. It is never modified.
    :param x_field: Field mapped to the x axis
    :param y_field: Field mapped to the y axis
    :param z_field: Field mapped to the z axis
    :param chart_kind: Chart kind being prepared
    :param index: Row index of the record in its dataset
    :param schema: Dataset schema. If None, one is inferred from this record alone,
        which only makes sense for one-off calls.
    :param policy: Substitution policy for missing or non-numeric values
    :return: The normalized point, or None if the record was rejected by the policy
    """
    policy = MissingValuePolicy(policy)
    if schema is None:
        schema = infer_schema([record], x_field, y_field, z_field, chart_kind)

    raw = (record.get(x_field), record.get(y_field), record.get(z_field))
    values = (
        _axis_value(raw[0], schema.x_categories),
        _axis_value(raw[1], schema.y_categories),
        coerce_number(raw[2]),
    )

    coordinates = []
    for value in values:
        if value is not None:
            coordinates.append(value)
        elif policy is MissingValuePolicy.REJECT:
            return None
        elif policy is MissingValuePolicy.INDEX:
            coordinates.append(float(index))
        else:
            coordinates.append(0.0)

    x, y, z = coordinates
    return Point3D(
        x=x,
        y=y,
        z=z,
        original_x=raw[0],
        original_y=raw[1],
        original_z=raw[2],
        index=index,
    )


def normalize_records(
    records: typing.Sequence[Record],
    x_field: str,
    y_field: str,
    z_field: str,
    chart_kind: typing.Union[ChartKind, str],
    schema: typing.Optional[DatasetSchema] = None,
    policy: MissingValuePolicy = MissingValuePolicy.ZERO,
    start_index: int = 0,
) -> typing.List[Point3D]:
    """
    Normalize a batch of records, dropping those rejected by the policy.

    :param records: Records to normalize
    :param x_field: Field mapped to the x axis
    :param y_field: Field mapped to the y axis
    :param z_field: Field mapped to the z axis
    :param chart_kind: Chart kind being prepared
    :param schema: Dataset schema, inferred from `records` if not given
    :param policy: Substitution policy for missing or non-numeric values
    :param start_index: Row index of the first record, for chunked processing
    :return: List of normalized points in input order
    """
    if schema is None:
        schema = infer_schema(records, x_field, y_field, z_field, chart_kind)

    points = []
    for offset, record in enumerate(records):
        point = normalize(
            record,
            x_field,
            y_field,
            z_field,
            chart_kind,
            index=start_index + offset,
            schema=schema,
            policy=policy,
        )
        if point is not None:
            points.append(point)
    return points
