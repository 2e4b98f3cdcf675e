from contextlib import contextmanager
from contextvars import ContextVar

import numpy as np
import numpy.typing  # noqa: F401


__all__ = ["get_dtype", "with_precision"]

_plotcube_dtype: ContextVar[np.typing.DTypeLike] = ContextVar(
    "_plotcube_dtype", default=np.float64
)


def get_dtype() -> np.typing.DTypeLike:
    """
    Get the dtype of the coordinate arrays built during aggregation.

    :return: The current data type. float64 unless overridden with `with_precision`.
    """
    return _plotcube_dtype.get()


@contextmanager
def with_precision(dtype: np.typing.DTypeLike):
    """
    Context manager to temporarily set the dtype, and hence the precision, of aggregation centroids.

    float32 halves the memory of very large point sets at the cost of centroid accuracy.

    :param dtype: The data type to set within the context.
    """
    token = _plotcube_dtype.set(dtype)
    try:
        yield
    finally:
        _plotcube_dtype.reset(token)
