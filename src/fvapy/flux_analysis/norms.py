"""Select a representative flux vector at the optimum of a single reaction."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Type, Union

import numpy as np

from ..util.solver import SolverCache
from .helpers import pin_flux
from .moma import minimize_distance, minimize_two_norm
from .parsimonious import minimize_one_norm, minimize_zero_norm


if TYPE_CHECKING:
    from ..core.problem import LinearProblem
    from ..core.solution import Solution


__all__ = ("NormMethod", "NormMinimizer", "get_norm_minimizer")

logger = logging.getLogger(__name__)


class NormMethod(Enum):
    """Define how a flux vector is picked among the optimal ones."""

    FBA = "FBA"
    NORM0 = "0-norm"
    NORM1 = "1-norm"
    NORM2 = "2-norm"
    MIN_ORIG_SOL = "minOrigSol"

    @classmethod
    def parse(cls, value: Union["NormMethod", str]) -> "NormMethod":
        """Return the method for a member, its name or its value.

        Raises
        ------
        ValueError
            If `value` does not name a method.

        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for method in cls:
                if value.lower() in (method.name.lower(), method.value.lower()):
                    return method
        raise ValueError(
            f"Unknown norm method '{value}'. Pick one from "
            f"{', '.join(method.value for method in cls)}."
        )


class NormMinimizer:
    """Recover a flux vector at a fixed optimum.

    Parameters
    ----------
    epsilon : float, optional
        The half width of the window the optimized flux is pinned to
        (default 1e-9).

    """

    method: NormMethod
    problem_type = "lp"

    def __init__(self, epsilon: float = 1e-9) -> None:
        """Initialize the minimizer."""
        self.epsilon = epsilon

    def minimize(
        self,
        problem: "LinearProblem",
        solution: "Solution",
        index: int,
        value: float,
        n_fluxes: int,
        cache: SolverCache,
    ) -> "Solution":
        """Return a solution at ``v[index] == value``.

        Parameters
        ----------
        problem : fvapy.LinearProblem
            The linear problem of the analysis, including the objective
            constraint. Its first `n_fluxes` columns are fluxes.
        solution : fvapy.Solution
            The solution in which `value` was found.
        index : int
            The optimized reaction.
        value : float
            The optimal flux of the reaction.
        n_fluxes : int
            The number of flux columns.
        cache : SolverCache
            The solver cache of the current worker.

        """
        pinned = pin_flux(problem, index, value, self.epsilon)
        return self._solve(pinned, solution, n_fluxes, cache)

    def _solve(self, problem, solution, n_fluxes, cache) -> "Solution":
        raise NotImplementedError


class FBAMinimizer(NormMinimizer):
    """Keep the optimal vertex the solver returned."""

    method = NormMethod.FBA

    def minimize(self, problem, solution, index, value, n_fluxes, cache):
        """Return `solution` unchanged."""
        return solution


class ZeroNormMinimizer(NormMinimizer):
    """Pick the sparsest flux vector."""

    method = NormMethod.NORM0
    problem_type = "milp"

    def _solve(self, problem, solution, n_fluxes, cache):
        return minimize_zero_norm(problem, n_fluxes, cache)


class OneNormMinimizer(NormMinimizer):
    """Pick the flux vector with the least summed absolute flux."""

    method = NormMethod.NORM1

    def _solve(self, problem, solution, n_fluxes, cache):
        return minimize_one_norm(problem, n_fluxes, cache)


class TwoNormMinimizer(NormMinimizer):
    """Pick the flux vector with the least Euclidean norm."""

    method = NormMethod.NORM2
    problem_type = "qp"

    def _solve(self, problem, solution, n_fluxes, cache):
        return minimize_two_norm(problem, n_fluxes, cache)


class OriginalSolutionMinimizer(NormMinimizer):
    """Pick the flux vector closest to a reference solution.

    Parameters
    ----------
    reference : numpy.ndarray
        The reference fluxes, usually the optimum of the model's objective.

    """

    method = NormMethod.MIN_ORIG_SOL
    problem_type = "qp"

    def __init__(self, reference: np.ndarray, epsilon: float = 1e-9) -> None:
        """Initialize the minimizer."""
        super().__init__(epsilon=epsilon)
        self.reference = np.asarray(reference, dtype=float)

    def _solve(self, problem, solution, n_fluxes, cache):
        return minimize_distance(problem, self.reference[:n_fluxes], n_fluxes, cache)


_MINIMIZERS: Dict[NormMethod, Type[NormMinimizer]] = {
    NormMethod.FBA: FBAMinimizer,
    NormMethod.NORM0: ZeroNormMinimizer,
    NormMethod.NORM1: OneNormMinimizer,
    NormMethod.NORM2: TwoNormMinimizer,
    NormMethod.MIN_ORIG_SOL: OriginalSolutionMinimizer,
}


def get_norm_minimizer(
    method: Union[NormMethod, str],
    reference: Optional[np.ndarray] = None,
    epsilon: float = 1e-9,
) -> NormMinimizer:
    """Return the minimizer for a norm method.

    Raises
    ------
    ValueError
        If `method` is unknown or a reference is missing for
        `NormMethod.MIN_ORIG_SOL`.

    """
    method = NormMethod.parse(method)
    if method is NormMethod.MIN_ORIG_SOL:
        if reference is None:
            raise ValueError("Minimizing the distance requires a reference solution.")
        return OriginalSolutionMinimizer(reference, epsilon=epsilon)
    return _MINIMIZERS[method](epsilon=epsilon)
