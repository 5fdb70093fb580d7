"""Provide functions related to Flux Analysis."""

from .efm import elementary_modes
from .loopless import (
    LoopInfo,
    LoopPolicy,
    add_loop_law_constraints,
    fast_snp,
    find_loops,
    fix_loop_directions,
    preprocess_llc,
    restore_original_bounds,
    update_llcs,
)
from .moma import add_moma
from .norms import NormMethod, get_norm_minimizer
from .parsimonious import add_pfba
from .variability import FluxVariabilityResult, flux_variability_analysis
