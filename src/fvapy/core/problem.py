"""Provide linear and mixed integer problems in matrix form."""

import logging
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
from scipy import sparse


if TYPE_CHECKING:
    from ..flux_analysis.loopless import LoopInfo


__all__ = ("LinearProblem", "MixedIntegerProblem")

logger = logging.getLogger(__name__)


class LinearProblem:
    """An optimization problem ``opt c'x (+ x'diag(F)x) s.t. Ax (=,<=,>=) b``.

    The constraint matrix is shared between copies and must be treated as
    read-only. All vectors are owned by each copy, so changing the objective
    or the bounds of a copy never leaks into the problem it was copied from.

    Parameters
    ----------
    A : scipy.sparse matrix
        The constraint matrix.
    b : array-like
        The right-hand side of the rows.
    csense : array-like of {"E", "L", "G"}
        The sense of each row.
    c : array-like
        The linear objective coefficients.
    lb, ub : array-like
        The bounds of the variables.
    osense : {"max", "min"}, optional
        The optimization direction (default "max").
    vtype : array-like of {"C", "B", "I"}, optional
        The variable types (default all continuous).
    F : array-like, optional
        The diagonal of a quadratic objective term (default None, linear).
    basis : optional
        A basis to warm start linear solvers from (default None).

    """

    def __init__(
        self,
        A,
        b,
        csense,
        c,
        lb,
        ub,
        osense: str = "max",
        vtype=None,
        F=None,
        basis=None,
    ) -> None:
        """Initialize a problem from its components."""
        self.A = A if sparse.isspmatrix_csr(A) else sparse.csr_matrix(A, dtype=float)
        n_rows, n_columns = self.A.shape
        self.b = np.array(b, dtype=float).reshape(n_rows)
        self.csense = np.array(csense, dtype="<U1").reshape(n_rows)
        self.c = np.array(c, dtype=float).reshape(n_columns)
        self.lb = np.array(lb, dtype=float).reshape(n_columns)
        self.ub = np.array(ub, dtype=float).reshape(n_columns)
        if osense not in ("max", "min"):
            raise ValueError(f"Unknown objective sense '{osense}', use 'max' or 'min'.")
        self.osense = osense
        if vtype is None:
            self.vtype = np.full(n_columns, "C", dtype="<U1")
        else:
            self.vtype = np.array(vtype, dtype="<U1").reshape(n_columns)
        self.F = None if F is None else np.array(F, dtype=float).reshape(n_columns)
        self.basis = basis

    @property
    def n_rows(self) -> int:
        """Return the number of constraints."""
        return self.A.shape[0]

    @property
    def n_columns(self) -> int:
        """Return the number of variables."""
        return self.A.shape[1]

    def _components(self) -> dict:
        return {
            "A": self.A,
            "b": self.b.copy(),
            "csense": self.csense.copy(),
            "c": self.c.copy(),
            "lb": self.lb.copy(),
            "ub": self.ub.copy(),
            "osense": self.osense,
            "vtype": self.vtype.copy(),
            "F": None if self.F is None else self.F.copy(),
            "basis": self.basis,
        }

    def copy(self) -> "LinearProblem":
        """Return a copy sharing the constraint matrix."""
        return type(self)(**self._components())

    def with_objective(
        self, c, osense: Optional[str] = None, F=None
    ) -> "LinearProblem":
        """Return a copy with a new objective.

        Parameters
        ----------
        c : array-like
            The linear objective coefficients.
        osense : {"max", "min"}, optional
            The new direction, unchanged by default.
        F : array-like, optional
            The diagonal of a quadratic objective term. The copy is linear if
            it is omitted.

        """
        problem = self.copy()
        problem.c = np.array(c, dtype=float).reshape(self.n_columns)
        if F is not None:
            F = np.array(F, dtype=float).reshape(self.n_columns)
        problem.F = F
        if osense is not None:
            if osense not in ("max", "min"):
                raise ValueError(
                    f"Unknown objective sense '{osense}', use 'max' or 'min'."
                )
            problem.osense = osense
        return problem

    def add_rows(self, A, b: Sequence[float], csense: Sequence[str]) -> "LinearProblem":
        """Return a copy with additional constraints.

        Parameters
        ----------
        A : array-like or scipy.sparse matrix
            The coefficients of the new rows over the existing columns.
        b : sequence of float
            The right-hand side of the new rows.
        csense : sequence of {"E", "L", "G"}
            The sense of the new rows.

        """
        components = self._components()
        components["A"] = sparse.vstack([self.A, sparse.csr_matrix(A)], format="csr")
        components["b"] = np.concatenate([self.b, np.asarray(b, dtype=float)])
        components["csense"] = np.concatenate(
            [self.csense, np.asarray(csense, dtype="<U1")]
        )
        return type(self)(**components)

    def add_columns(
        self, n: int, lb, ub, c=0.0, vtype: str = "C", A=None
    ) -> "LinearProblem":
        """Return a copy with `n` additional variables.

        Parameters
        ----------
        n : int
            The number of new variables.
        lb, ub : float or array-like
            The bounds of the new variables.
        c : float or array-like, optional
            Their objective coefficients (default 0).
        vtype : {"C", "B", "I"}, optional
            Their type (default "C").
        A : array-like or scipy.sparse matrix, optional
            Their coefficients in the existing rows (default all zero).

        """
        components = self._components()
        if A is None:
            A = sparse.csr_matrix((self.n_rows, n))
        components["A"] = sparse.hstack([self.A, sparse.csr_matrix(A)], format="csr")
        components["c"] = np.concatenate([self.c, np.broadcast_to(c, n)])
        components["lb"] = np.concatenate([self.lb, np.broadcast_to(lb, n)])
        components["ub"] = np.concatenate([self.ub, np.broadcast_to(ub, n)])
        components["vtype"] = np.concatenate(
            [self.vtype, np.full(n, vtype, dtype="<U1")]
        )
        if self.F is not None:
            components["F"] = np.concatenate([self.F, np.zeros(n)])
        # A basis does not survive a change in dimension.
        components["basis"] = None
        return type(self)(**components)

    @property
    def is_mixed_integer(self) -> bool:
        """Whether any variable is binary or integer."""
        return bool(np.any(self.vtype != "C"))

    def __repr__(self) -> str:
        """Return a short representation of the problem."""
        kind = "QP" if self.F is not None else "MILP" if self.is_mixed_integer else "LP"
        return (
            f"<{type(self).__name__} {kind} at {id(self):#x}: "
            f"{self.n_rows} rows, {self.n_columns} columns, {self.osense}>"
        )


class MixedIntegerProblem(LinearProblem):
    """A linear problem extended by loop law constraints.

    Parameters
    ----------
    rhs0 : array-like, optional
        The snapshot of the right-hand side that restores all loop law rows.
        Defaults to a copy of `b`.
    loop_info : fvapy.flux_analysis.loopless.LoopInfo, optional
        The loop structure and the indices of the loop law rows and variables.

    Other Parameters
    ----------------
    kwargs :
        Passed on to `LinearProblem`.

    """

    def __init__(self, rhs0=None, loop_info: "Optional[LoopInfo]" = None, **kwargs):
        """Initialize a problem from its components."""
        super().__init__(**kwargs)
        self.rhs0 = self.b.copy() if rhs0 is None else np.asarray(rhs0, dtype=float)
        self.loop_info = loop_info

    def _components(self) -> dict:
        components = super()._components()
        # The snapshot is read-only by contract and shared between copies.
        components["rhs0"] = self.rhs0
        components["loop_info"] = self.loop_info
        return components

    def add_rows(
        self, A, b: Sequence[float], csense: Sequence[str]
    ) -> "MixedIntegerProblem":
        """Return a copy with additional constraints, extending the snapshot."""
        problem = super().add_rows(A, b, csense)
        problem.rhs0 = np.concatenate([self.rhs0, np.asarray(b, dtype=float)])
        return problem
