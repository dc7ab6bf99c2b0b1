"""Distribution targets and the concurrent fan-out that drives them."""

from autocert.runners.base import (
    DistributionError,
    DistributionTarget,
    TargetConfigError,
)
from autocert.runners.fanout import RunnerFanOut
from autocert.runners.registry import load_targets

__all__ = [
    "DistributionError",
    "DistributionTarget",
    "RunnerFanOut",
    "TargetConfigError",
    "load_targets",
]
