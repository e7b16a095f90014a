"""Monte Carlo null distributions for covariance tests on singly imputed synthetic data."""

from importlib import metadata as _metadata

from .config import RunConfig, SimulationParameters
from .driver import canodist, gvdist, inddist, run, run_config, simulate, sphdist
from .errors import (
    ConfigError,
    InvalidPartition,
    NonPositiveDefiniteScale,
    SingularBlock,
    SynthPivotError,
)
from .observed import (
    canonical_statistic,
    independence_statistic,
    regression_coefficients,
    scatter_matrix,
    sphericity_statistic,
)
from .partition import assemble, partition, regression_part
from .results import NullDistribution, summarize
from .statistics import PivotKind, canonical, generalized_variance, independence, sphericity
from .wishart import draw_wishart

try:
    __version__ = _metadata.version("synthpivot")
except _metadata.PackageNotFoundError:  # pragma: no cover - during local usage
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    # simulation
    "simulate",
    "gvdist",
    "sphdist",
    "inddist",
    "canodist",
    "run",
    "run_config",
    # building blocks
    "partition",
    "assemble",
    "regression_part",
    "draw_wishart",
    "PivotKind",
    "generalized_variance",
    "sphericity",
    "independence",
    "canonical",
    # results / observed statistics
    "NullDistribution",
    "summarize",
    "scatter_matrix",
    "regression_coefficients",
    "sphericity_statistic",
    "canonical_statistic",
    "independence_statistic",
    # configuration
    "SimulationParameters",
    "RunConfig",
    # errors
    "SynthPivotError",
    "InvalidPartition",
    "NonPositiveDefiniteScale",
    "SingularBlock",
    "ConfigError",
]
