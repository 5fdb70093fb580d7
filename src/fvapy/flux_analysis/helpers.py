"""Helper functions for all flux analysis methods."""

import math
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np


if TYPE_CHECKING:
    from ..core.problem import LinearProblem


def normalize_cutoff(tolerance: float, zero_cutoff: Optional[float] = None) -> float:
    """Return a valid zero cutoff value.

    Parameters
    ----------
    tolerance : float
        The solver tolerance of the analysis.
    zero_cutoff : positive float, optional
        The zero cutoff value. If not specified, defaults to `tolerance`
        (default None).

    Returns
    -------
    float
        The normalized zero cutoff value.

    Raises
    ------
    ValueError
        If the specified `zero_cutoff` is lesser than `tolerance`.

    """
    if zero_cutoff is None:
        return tolerance
    else:
        if zero_cutoff < tolerance:
            raise ValueError(
                "The chosen zero cutoff cannot be less than the solver tolerance."
            )
        else:
            return zero_cutoff


def relax_bounds(
    lb: np.ndarray, ub: np.ndarray, big_m: float = 1e4
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Relax upper and lower bounds while keeping their directions.

    All positive upper bounds will become `big_m`.
    All negative lower bounds will become `-big_m`.
    All positive lower bounds and negative upper bounds will become zero.

    Parameters
    ----------
    lb, ub : numpy.ndarray
        The bounds to relax. They are not modified.
    big_m : float, optional
        A large constant for relaxing the bounds (default 1e4).

    Returns
    -------
    tuple of numpy.ndarray
        The relaxed lower and upper bounds.

    """
    return np.where(lb < 0, -big_m, 0.0), np.where(ub > 0, big_m, 0.0)


def quantize_objective(value: float, tolerance: float, sense: str) -> float:
    """Round an optimal objective value onto the tolerance grid.

    Maximal values are rounded down and minimal values up so that imposing
    the result as a constraint never cuts off the optimum.

    """
    scale = 1.0 / tolerance
    if abs(scale - round(scale)) < 1e-9 * scale:
        # Dividing by an integral scale keeps decimal values exact.
        scale = round(scale)
    if sense == "max":
        return math.floor(value * scale) / scale
    return math.ceil(value * scale) / scale


def pin_flux(
    problem: "LinearProblem", index: int, value: float, epsilon: float
) -> "LinearProblem":
    """Return a copy with a variable restricted to ``value ± epsilon``.

    The window never widens the original bounds of the variable.

    """
    problem = problem.copy()
    problem.lb[index] = max(problem.lb[index], value - epsilon)
    problem.ub[index] = min(problem.ub[index], value + epsilon)
    if problem.lb[index] > problem.ub[index]:
        problem.lb[index] = problem.ub[index] = value
    return problem
