class PlotCubeError(Exception):
    """Base class for all plotcube-related errors."""

    pass


class ValidationError(PlotCubeError, ValueError):
    """Raised when configuration or arguments fail validation checks."""

    pass


class PipelineCancelled(PlotCubeError):
    """Raised inside a pipeline run whose cancellation token has been triggered."""

    pass


class RunnerError(PlotCubeError):
    """Raised when the background pipeline runner is misused or its worker fails."""

    pass
