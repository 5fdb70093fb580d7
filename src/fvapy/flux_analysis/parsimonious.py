"""Provide parsimonious flux distributions at a fixed optimum."""

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np
from scipy import sparse

from ..core.configuration import Configuration
from ..util.solver import SolverCache


if TYPE_CHECKING:
    from ..core.problem import LinearProblem
    from ..core.solution import Solution


logger = logging.getLogger(__name__)

configuration = Configuration()


def add_pfba(problem: "LinearProblem", n_fluxes: int) -> "LinearProblem":
    """Return a copy that minimizes the summed absolute flux.

    One variable t_j >= |v_j| is added per flux with the rows
    ``v_j - t_j <= 0`` and ``-v_j - t_j <= 0``, and the objective becomes
    ``min sum(t)``.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to extend. Its first `n_fluxes` columns are fluxes.
    n_fluxes : int
        The number of flux columns.

    """
    n0 = problem.n_columns
    extended = problem.add_columns(n_fluxes, 0.0, np.inf)
    flux = sparse.hstack(
        [
            sparse.identity(n_fluxes, format="csr"),
            sparse.csr_matrix((n_fluxes, n0 - n_fluxes)),
        ]
    )
    eye = sparse.identity(n_fluxes, format="csr")
    extended = extended.add_rows(
        sparse.vstack([sparse.hstack([flux, -eye]), sparse.hstack([-flux, -eye])]),
        np.zeros(2 * n_fluxes),
        ["L"] * (2 * n_fluxes),
    )
    c = np.zeros(extended.n_columns)
    c[n0:] = 1.0
    return extended.with_objective(c, "min")


def add_sparse(
    problem: "LinearProblem", n_fluxes: int, big_m: Optional[float] = None
) -> "LinearProblem":
    """Return a copy that minimizes the number of active fluxes.

    One binary y_j is added per flux with the rows ``v_j - ub_j y_j <= 0``
    and ``v_j - lb_j y_j >= 0``, and the objective becomes ``min sum(y)``.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to extend. Its first `n_fluxes` columns are fluxes.
    n_fluxes : int
        The number of flux columns.
    big_m : float, optional
        Replaces infinite flux bounds (default `Configuration().upper_bound`).

    """
    if big_m is None:
        big_m = configuration.upper_bound
    n0 = problem.n_columns
    lb = np.maximum(problem.lb[:n_fluxes], -big_m)
    ub = np.minimum(problem.ub[:n_fluxes], big_m)
    extended = problem.add_columns(n_fluxes, 0.0, 1.0, vtype="B")
    flux = sparse.hstack(
        [
            sparse.identity(n_fluxes, format="csr"),
            sparse.csr_matrix((n_fluxes, n0 - n_fluxes)),
        ]
    )
    extended = extended.add_rows(
        sparse.vstack(
            [
                sparse.hstack([flux, -sparse.diags(ub, shape=(n_fluxes, n_fluxes))]),
                sparse.hstack([flux, -sparse.diags(lb, shape=(n_fluxes, n_fluxes))]),
            ]
        ),
        np.zeros(2 * n_fluxes),
        ["L"] * n_fluxes + ["G"] * n_fluxes,
    )
    c = np.zeros(extended.n_columns)
    c[n0:] = 1.0
    return extended.with_objective(c, "min")


def minimize_one_norm(
    problem: "LinearProblem", n_fluxes: int, cache: SolverCache
) -> "Solution":
    """Solve for the flux vector of minimal 1-norm."""
    return cache.solve(add_pfba(problem, n_fluxes), "lp")


def minimize_zero_norm(
    problem: "LinearProblem", n_fluxes: int, cache: SolverCache
) -> "Solution":
    """Solve for the flux vector with the fewest nonzero fluxes."""
    return cache.solve(add_sparse(problem, n_fluxes), "milp")
