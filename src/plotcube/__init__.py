"""
*PLOTCUBE*

Adaptive data reduction and geometry pipeline for interactive 3D charts.
"""

from ._precision import *  # noqa
from .types import *  # noqa
from .errors import *  # noqa
from .config import *  # noqa
from .tiers import *  # noqa
from .records import *  # noqa
from .reduction import *  # noqa
from .geometry import *  # noqa
from .commands import *  # noqa
from .visualization import *  # noqa
from .pipeline import *  # noqa
