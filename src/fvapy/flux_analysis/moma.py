"""Provide Euclidean norm and distance minimization at a fixed optimum."""

import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy import sparse

from ..util.solver import SolverCache


if TYPE_CHECKING:
    from ..core.problem import LinearProblem
    from ..core.solution import Solution


logger = logging.getLogger(__name__)


def add_moma(
    problem: "LinearProblem", reference: np.ndarray, n_fluxes: int
) -> "LinearProblem":
    r"""
    Return a copy minimizing the Euclidean distance to a reference.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to extend. Its first `n_fluxes` columns are fluxes.
    reference : numpy.ndarray
        The reference fluxes.
    n_fluxes : int
        The number of flux columns.

    Notes
    -----
    One looks for the flux distribution v^d closest to the reference v:

    minimize: \sum_i (v^d_i - v_i)^2
    s.t.    : Sv^d = 0
              lb_i \le v^d_i \le ub_i

    Here, we use a variable transformation v^t := v^d_i - v_i, which gives:

    minimize: \sum_i (v^t_i)^2
    s.t.    : Sv^d = 0
              v^t = v^d_i - v_i
              lb_i \le v^d_i \le ub_i

    So, basically we just re-center the flux space at the reference and then
    find the flux distribution closest to the new zero (center).

    """
    n0 = problem.n_columns
    reference = np.asarray(reference, dtype=float).reshape(n_fluxes)
    extended = problem.add_columns(n_fluxes, -np.inf, np.inf)
    flux = sparse.hstack(
        [
            sparse.identity(n_fluxes, format="csr"),
            sparse.csr_matrix((n_fluxes, n0 - n_fluxes)),
        ]
    )
    extended = extended.add_rows(
        sparse.hstack([flux, -sparse.identity(n_fluxes, format="csr")]),
        reference,
        ["E"] * n_fluxes,
    )
    F = np.zeros(extended.n_columns)
    F[n0:] = 1.0
    return extended.with_objective(np.zeros(extended.n_columns), "min", F=F)


def add_minimal_norm(problem: "LinearProblem", n_fluxes: int) -> "LinearProblem":
    """Return a copy minimizing the squared Euclidean norm of the fluxes."""
    F = np.zeros(problem.n_columns)
    F[:n_fluxes] = 1.0
    return problem.with_objective(np.zeros(problem.n_columns), "min", F=F)


def minimize_two_norm(
    problem: "LinearProblem", n_fluxes: int, cache: SolverCache
) -> "Solution":
    """Solve for the flux vector of minimal Euclidean norm."""
    return cache.solve(add_minimal_norm(problem, n_fluxes), "qp")


def minimize_distance(
    problem: "LinearProblem", reference: np.ndarray, n_fluxes: int, cache: SolverCache
) -> "Solution":
    """Solve for the flux vector closest to a reference."""
    return cache.solve(add_moma(problem, reference, n_fluxes), "qp")
