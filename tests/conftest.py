import pytest

from plotcube.records import Point3D


@pytest.fixture
def bar_records():
    """Three categorical bar records."""
    return [
        {"x": "A", "y": "R1", "z": 10},
        {"x": "A", "y": "R2", "z": 20},
        {"x": "B", "y": "R1", "z": 5},
    ]


@pytest.fixture
def make_points():
    """Factory building points from (x, y, z) tuples."""

    def _make(coordinates):
        return [
            Point3D(x=float(x), y=float(y), z=float(z), index=i)
            for i, (x, y, z) in enumerate(coordinates)
        ]

    return _make
