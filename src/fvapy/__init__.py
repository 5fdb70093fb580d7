__author__ = "The fvapy development team."
__version__ = "0.1.0"


from fvapy.core import (
    Configuration,
    LinearProblem,
    MixedIntegerProblem,
    Model,
    Solution,
)
from fvapy import flux_analysis
from fvapy import manipulation
from fvapy.flux_analysis import (
    FluxVariabilityResult,
    LoopPolicy,
    NormMethod,
    flux_variability_analysis,
)
from fvapy.manipulation import add_sink_reactions
from fvapy.util import show_versions
