"""Provide a unified interface to optimization solutions."""

import logging

import numpy as np
from optlang.interface import OPTIMAL, UNBOUNDED

from ..util.solver import check_solver_status


__all__ = ("Solution",)

logger = logging.getLogger(__name__)


class Solution:
    """
    A unified interface to the solution of a matrix-form problem.

    Parameters
    ----------
    objective_value : float
        The (optimal) value for the objective function. Infinite for
        unbounded problems and NaN for any other non-optimal status.
    status : str
        The optlang solver status related to the solution.
    x : numpy.ndarray
        The values of all problem variables, NaN unless optimal.
    basis : optional
        The simplex basis of the solution if the backend exposes one
        (default None).

    """

    def __init__(
        self,
        objective_value: float,
        status: str,
        x: np.ndarray,
        basis=None,
    ) -> None:
        """Initialize a `Solution` from its components."""
        self.objective_value = objective_value
        self.status = status
        self.x = x
        self.basis = basis

    @property
    def is_optimal(self) -> bool:
        """Whether the solver found an optimal solution."""
        return self.status == OPTIMAL

    @property
    def is_unbounded(self) -> bool:
        """Whether the solver reported an unbounded problem."""
        return self.status == UNBOUNDED

    def raise_for_status(self) -> None:
        """Raise the matching `fvapy.exceptions.OptimizationError` unless optimal."""
        check_solver_status(self.status, raise_error=True)

    def __repr__(self) -> str:
        """Return a string representation of the solution instance."""
        if self.status != OPTIMAL:
            return f"<Solution {self.status} at {id(self):#x}>"
        return f"<Solution {self.objective_value:.3f} at {id(self):#x}>"
