"""Additional helper functions for the optlang solvers.

Problems in fvapy live in matrix form (see `fvapy.core.problem`). They are
compiled into optlang models only when they are solved. A compiled model is
kept around by a `SolverCache` and re-synchronized with the next problem as
long as the constraint matrix is the same object, so that a sequence of solves
which only change objectives, bounds or right-hand sides (as in flux
variability analysis) reuses the backend state.

The solver backend is never read from global state while solving. A picklable
`SolverConfig` is created once per analysis and handed to every solve call and
to every worker process.

"""

import logging
import re
from types import ModuleType
from typing import TYPE_CHECKING, Dict, NamedTuple, Optional, Union

import numpy as np
import optlang
from optlang.interface import (
    FEASIBLE,
    INFEASIBLE,
    ITERATION_LIMIT,
    NUMERIC,
    OPTIMAL,
    SUBOPTIMAL,
    TIME_LIMIT,
    UNBOUNDED,
)
from optlang.symbolics import Zero, add

from ..exceptions import OPTLANG_TO_EXCEPTIONS_DICT, OptimizationError, SolverNotFound


if TYPE_CHECKING:
    from ..core.problem import LinearProblem
    from ..core.solution import Solution


logger = logging.getLogger(__name__)

# Define all the solvers that are found in optlang.
solvers = {
    match.split("_interface")[0]: getattr(optlang, match)
    for match in dir(optlang)
    if "_interface" in match
}

# Defines all the QP solvers implemented in optlang.
qp_solvers = ["cplex", "gurobi", "osqp", "hybrid"]

# optlang solution statuses which still allow retrieving primal values
has_primals = [NUMERIC, FEASIBLE, INFEASIBLE, SUBOPTIMAL, ITERATION_LIMIT, TIME_LIMIT]

PROBLEM_TYPES = ("lp", "milp", "qp")

_OPTION_KEYS = {"timeout", "presolve", "verbosity", "tolerances"}
_TOLERANCE_KEYS = {"feasibility", "optimality", "integrality"}


def interface_to_str(interface: Union[str, ModuleType]) -> str:
    """Give a string representation for an optlang interface.

    Parameters
    ----------
    interface : str, ModuleType
        Full name of the interface in optlang or fvapy representation.
        For instance, 'optlang.glpk_interface' or 'optlang-glpk'.

    Returns
    -------
    str
       The name of the interface as a string.
    """
    if isinstance(interface, ModuleType):
        interface = interface.__name__
    return re.sub(r"optlang.|.interface", "", interface)


def get_solver_name(mip: bool = False, qp: bool = False) -> str:
    """Select a solver for a given optimization problem.

    Parameters
    ----------
    mip : bool
        True if the solver requires mixed integer linear programming capabilities.
    qp : bool
        True if the solver requires quadratic programming capabilities.

    Returns
    -------
    str
        The name of the feasible solver.

    Raises
    ------
    SolverNotFound
        If no suitable solver could be found.

    """
    if len(solvers) == 0:
        raise SolverNotFound("No solvers found.")
    # Those lists need to be updated as optlang implements more solvers
    mip_order = ["gurobi", "cplex", "glpk", "hybrid"]
    lp_order = ["glpk", "cplex", "gurobi", "hybrid"]
    qp_order = ["gurobi", "cplex", "hybrid", "osqp"]

    if mip is False and qp is False:
        for solver_name in lp_order:
            if solver_name in solvers:
                return solver_name
        # none of them are in the list order - so return the first one
        return list(solvers)[0]
    elif qp:  # mip does not yet matter for this determination
        for solver_name in qp_order:
            if solver_name in solvers:
                return solver_name
        raise SolverNotFound("No QP-capable solver found.")
    else:
        for solver_name in mip_order:
            if solver_name in solvers:
                return solver_name
    raise SolverNotFound("No MIP-capable solver found.")


def check_solver(obj: Union[str, ModuleType]) -> ModuleType:
    """Check whether the chosen solver is valid.

    Check whether chosen solver is valid and also warn when using
    a specialized solver. Will return the optlang interface for the
    requested solver.

    Parameters
    ----------
    obj : str or optlang.interface
        The chosen solver.

    Raises
    ------
    SolverNotFound
        If the solver is not valid.
    """
    not_valid_interface = SolverNotFound(
        f"{obj} is not a valid solver interface. Pick one from {', '.join(solvers)}."
    )
    if isinstance(obj, str):
        try:
            interface = solvers[interface_to_str(obj)]
        except KeyError:
            raise not_valid_interface
    elif isinstance(obj, ModuleType) and hasattr(obj, "Model"):
        interface = obj
    else:
        raise not_valid_interface

    if interface_to_str(interface) in ["osqp", "coinor_cbc"]:
        logger.warning(
            "OSQP and CBC are specialized solvers for quadratic programming (QP) and "
            "mixed-integer programming (MIP) problems and may not perform well on "
            "general LP problems. So unless you intend to solve a QP or MIP problem, "
            "we recommend to pick a general purpose solver like 'glpk' instead."
        )

    return interface


def _check_options(options: Dict) -> Dict:
    """Validate solver options and return a copy of them."""
    unknown = set(options) - _OPTION_KEYS
    if unknown:
        raise ValueError(
            f"Unknown solver option(s) {', '.join(sorted(unknown))}. "
            f"Valid options are {', '.join(sorted(_OPTION_KEYS))}."
        )
    tolerances = options.get("tolerances", {})
    unknown = set(tolerances) - _TOLERANCE_KEYS
    if unknown:
        raise ValueError(
            f"Unknown solver tolerance(s) {', '.join(sorted(unknown))}. "
            f"Valid tolerances are {', '.join(sorted(_TOLERANCE_KEYS))}."
        )
    options = dict(options)
    if tolerances:
        options["tolerances"] = dict(tolerances)
    return options


class SolverConfig(NamedTuple):
    """Define the solver backends used by one analysis.

    Attributes
    ----------
    lp : str
        Name of the optlang interface used for linear programs.
    milp : str
        Name of the optlang interface used for mixed integer programs.
    qp : str or None
        Name of the optlang interface used for quadratic programs, None if no
        QP-capable interface is installed.
    tolerance : float
        The tolerance used to quantize optimal objective values.
    options : dict
        Options applied to the configuration of every optlang model.

    """

    lp: str
    milp: str
    qp: Optional[str]
    tolerance: float
    options: Dict

    @classmethod
    def build(
        cls,
        solver: Union[str, ModuleType, None] = None,
        options: Optional[Dict] = None,
        tolerance: Optional[float] = None,
    ) -> "SolverConfig":
        """Create a solver configuration from arguments and global defaults.

        Parameters
        ----------
        solver : str or optlang interface, optional
            The preferred solver. It is used for every problem type it is
            capable of. Defaults to the solver of `fvapy.Configuration`
            (default None).
        options : dict, optional
            Solver options, see `apply_options` (default None).
        tolerance : float, optional
            Defaults to the tolerance of `fvapy.Configuration` (default None).

        Returns
        -------
        SolverConfig
            The solver configuration.

        Raises
        ------
        SolverNotFound
            If the requested solver is not available.

        """
        from ..core.configuration import Configuration

        configuration = Configuration()
        if solver is None:
            solver = configuration.solver
        name = interface_to_str(check_solver(solver))
        # GLPK solves MILPs but neither GLPK nor its exact variant solve QPs.
        milp = name if name not in ("osqp", "glpk_exact", "scipy") else None
        if milp is None:
            milp = get_solver_name(mip=True)
        if name in qp_solvers:
            qp = name
        else:
            try:
                qp = get_solver_name(qp=True)
            except SolverNotFound:
                qp = None
        return cls(
            lp=name,
            milp=milp,
            qp=qp,
            tolerance=configuration.tolerance if tolerance is None else tolerance,
            options=_check_options(options or {}),
        )

    def interface(self, problem_type: str) -> ModuleType:
        """Return the optlang interface for a problem type.

        Parameters
        ----------
        problem_type : {"lp", "milp", "qp"}
            The kind of problem to solve.

        Returns
        -------
        optlang.interface
            The solver interface module.

        Raises
        ------
        SolverNotFound
            If no interface is configured for QPs.

        """
        if problem_type == "lp":
            return solvers[self.lp]
        elif problem_type == "milp":
            return solvers[self.milp]
        elif problem_type == "qp":
            if self.qp is None:
                raise SolverNotFound(
                    "No QP-capable solver found. Please install one of "
                    f"{', '.join(qp_solvers)}."
                )
            return solvers[self.qp]
        raise ValueError(f"Unknown problem type '{problem_type}'.")


def apply_options(model: optlang.interface.Model, options: Dict) -> None:
    """Apply solver options to the configuration of an optlang model.

    Parameters
    ----------
    model : optlang.interface.Model
        The optlang model to configure.
    options : dict
        Any of "timeout", "presolve", "verbosity" and a nested "tolerances"
        dictionary with any of "feasibility", "optimality", "integrality".

    """
    configuration = model.configuration
    for key, value in options.items():
        if key == "tolerances":
            for name, tolerance in value.items():
                try:
                    setattr(configuration.tolerances, name, tolerance)
                except AttributeError:
                    logger.warning(
                        f"The {name} tolerance is not supported by "
                        f"{interface_to_str(model.interface)} and was not set."
                    )
        else:
            setattr(configuration, key, value)


def _row_bounds(b: float, sense: str):
    """Translate a right-hand side and its sense into optlang bounds."""
    b = float(b)
    if sense == "E":
        return b, b
    elif sense == "L":
        return None, (None if np.isinf(b) else b)
    elif sense == "G":
        return (None if np.isinf(b) else b), None
    raise ValueError(f"Unknown constraint sense '{sense}'.")


def _column_bounds(lb: float, ub: float):
    """Translate variable bounds into optlang bounds."""
    return (None if np.isinf(lb) else float(lb)), (None if np.isinf(ub) else float(ub))


_VARIABLE_TYPES = {"C": "continuous", "B": "binary", "I": "integer"}


class CompiledProblem:
    """An optlang model that mirrors a matrix-form problem.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to compile.
    interface : optlang.interface
        The solver interface to compile the problem for.
    options : dict
        Solver options applied to the optlang model.

    """

    def __init__(
        self,
        problem: "LinearProblem",
        interface: ModuleType,
        options: Optional[Dict] = None,
    ) -> None:
        """Build the optlang model."""
        self.interface = interface
        self._A = problem.A
        self._vtype = problem.vtype.copy()
        self._quadratic = problem.F is not None
        model = interface.Model()
        if options:
            apply_options(model, options)
        self._variables = []
        for j in range(problem.n_columns):
            lb, ub = _column_bounds(problem.lb[j], problem.ub[j])
            self._variables.append(
                interface.Variable(
                    f"x_{j}", lb=lb, ub=ub, type=_VARIABLE_TYPES[problem.vtype[j]]
                )
            )
        model.add(self._variables)
        self._constraints = []
        for i in range(problem.n_rows):
            lb, ub = _row_bounds(problem.b[i], problem.csense[i])
            self._constraints.append(
                interface.Constraint(Zero, lb=lb, ub=ub, name=f"row_{i}", sloppy=True)
            )
        model.add(self._constraints, sloppy=True)
        model.update()
        matrix = problem.A.tocsr()
        for i, constraint in enumerate(self._constraints):
            start, stop = matrix.indptr[i], matrix.indptr[i + 1]
            constraint.set_linear_coefficients(
                {
                    self._variables[j]: float(value)
                    for j, value in zip(
                        matrix.indices[start:stop], matrix.data[start:stop]
                    )
                }
            )
        self.model = model
        self._b = problem.b.copy()
        self._csense = problem.csense.copy()
        self._lb = problem.lb.copy()
        self._ub = problem.ub.copy()
        self._c = None
        self._F = None
        self._osense = None
        self._set_objective(problem)

    def matches(self, problem: "LinearProblem", interface: ModuleType) -> bool:
        """Test whether the problem can be synchronized into this model."""
        return (
            interface is self.interface
            and problem.A is self._A
            and (problem.F is not None) == self._quadratic
            and np.array_equal(problem.vtype, self._vtype)
        )

    def _set_objective(self, problem: "LinearProblem") -> None:
        """Replace the objective of the optlang model."""
        if problem.F is not None:
            terms = [
                float(weight) * self._variables[j] ** 2
                for j, weight in enumerate(problem.F)
                if weight != 0.0
            ]
            terms.extend(
                float(coefficient) * self._variables[j]
                for j, coefficient in enumerate(problem.c)
                if coefficient != 0.0
            )
            self.model.objective = self.interface.Objective(
                add(terms) if terms else Zero, direction=problem.osense, sloppy=True
            )
        else:
            self.model.objective = self.interface.Objective(
                Zero, direction=problem.osense, sloppy=True
            )
            self.model.objective.set_linear_coefficients(
                {
                    self._variables[j]: float(problem.c[j])
                    for j in np.flatnonzero(problem.c)
                }
            )
        self._c = problem.c.copy()
        self._F = None if problem.F is None else problem.F.copy()
        self._osense = problem.osense

    def sync(self, problem: "LinearProblem") -> None:
        """Push objective, bounds and right-hand sides into the optlang model."""
        if problem.F is not None and not (
            np.array_equal(problem.F, self._F) and np.array_equal(problem.c, self._c)
        ):
            self._set_objective(problem)
        elif problem.F is None:
            changed = np.flatnonzero(problem.c != self._c)
            if len(changed) > 0:
                self.model.objective.set_linear_coefficients(
                    {self._variables[j]: float(problem.c[j]) for j in changed}
                )
                self._c = problem.c.copy()
        if problem.osense != self._osense:
            self.model.objective.direction = problem.osense
            self._osense = problem.osense
        for j in np.flatnonzero((problem.lb != self._lb) | (problem.ub != self._ub)):
            lb, ub = _column_bounds(problem.lb[j], problem.ub[j])
            self._variables[j].set_bounds(lb, ub)
        self._lb = problem.lb.copy()
        self._ub = problem.ub.copy()
        changed = (problem.b != self._b) | (problem.csense != self._csense)
        for i in np.flatnonzero(changed):
            lb, ub = _row_bounds(problem.b[i], problem.csense[i])
            # Setting lb before ub may temporarily violate lb <= ub in optlang.
            self._constraints[i].lb = None
            self._constraints[i].ub = ub
            self._constraints[i].lb = lb
        self._b = problem.b.copy()
        self._csense = problem.csense.copy()

    @property
    def is_glpk(self) -> bool:
        """Whether the underlying backend is (plain) GLPK."""
        return interface_to_str(self.interface) == "glpk"

    def get_basis(self):
        """Return the current simplex basis, only available for GLPK LPs."""
        if not self.is_glpk or not np.all(self._vtype == "C"):
            return None
        from swiglpk import glp_get_col_stat, glp_get_row_stat

        lp = self.model.problem
        return (
            tuple(glp_get_row_stat(lp, i + 1) for i in range(len(self._constraints))),
            tuple(glp_get_col_stat(lp, j + 1) for j in range(len(self._variables))),
        )

    def set_basis(self, basis) -> None:
        """Seed the simplex with a basis obtained from `get_basis`.

        Rows beyond the ones known to the basis start as basic, which keeps
        the basis valid for a problem that has more rows than the one the
        basis was taken from.

        """
        if basis is None:
            return
        if not self.is_glpk:
            logger.debug(
                f"Warm starts are not supported by {interface_to_str(self.interface)}."
            )
            return
        from swiglpk import GLP_BS, glp_set_col_stat, glp_set_row_stat

        row_stat, col_stat = basis
        if len(col_stat) != len(self._variables):
            logger.debug("Ignoring a basis of incompatible dimension.")
            return
        lp = self.model.problem
        for i in range(len(self._constraints)):
            glp_set_row_stat(lp, i + 1, row_stat[i] if i < len(row_stat) else GLP_BS)
        for j, status in enumerate(col_stat):
            glp_set_col_stat(lp, j + 1, status)

    def solve(self, problem: "LinearProblem", basis=None) -> "Solution":
        """Synchronize and optimize, returning a `fvapy.Solution`."""
        from ..core.solution import Solution

        self.sync(problem)
        self.set_basis(basis)
        status = self.model.optimize()
        if status == OPTIMAL:
            values = self.model.primal_values
            x = np.array(
                [values[variable.name] for variable in self._variables], dtype=float
            )
            objective_value = self.model.objective.value
            basis = self.get_basis()
        else:
            x = np.full(len(self._variables), np.nan)
            basis = None
            if status == UNBOUNDED:
                objective_value = np.inf if problem.osense == "max" else -np.inf
            else:
                objective_value = np.nan
        return Solution(objective_value, status, x, basis=basis)


class SolverCache:
    """Keep one compiled optlang model per problem type.

    Parameters
    ----------
    config : SolverConfig
        The solver configuration used to compile problems.

    """

    def __init__(self, config: SolverConfig) -> None:
        """Initialize an empty cache."""
        self.config = config
        self._compiled: Dict[str, CompiledProblem] = {}

    def get(self, problem: "LinearProblem", problem_type: str) -> CompiledProblem:
        """Return a compiled model able to solve the given problem."""
        interface = self.config.interface(problem_type)
        compiled = self._compiled.get(problem_type)
        if compiled is None or not compiled.matches(problem, interface):
            logger.debug(
                f"Compiling a {problem.n_rows} x {problem.n_columns} "
                f"{problem_type.upper()} for {interface_to_str(interface)}."
            )
            compiled = CompiledProblem(problem, interface, self.config.options)
            self._compiled[problem_type] = compiled
        return compiled

    def solve(
        self, problem: "LinearProblem", problem_type: str, basis=None
    ) -> "Solution":
        """Solve a problem with the backend for the given problem type."""
        if problem_type not in PROBLEM_TYPES:
            raise ValueError(f"Unknown problem type '{problem_type}'.")
        return self.get(problem, problem_type).solve(problem, basis=basis)


def solve_lp(
    problem: "LinearProblem",
    config: SolverConfig,
    cache: Optional[SolverCache] = None,
    basis=None,
) -> "Solution":
    """Solve a linear program.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to solve. Integer variable types are ignored only in the
        sense that the LP interface receives them as they are.
    config : SolverConfig
        The solver configuration.
    cache : SolverCache, optional
        A cache holding previously compiled problems (default None).
    basis : optional
        A basis to warm start from, as returned in `Solution.basis`
        (default None).

    Returns
    -------
    fvapy.Solution
        The solution with status, objective value and variable values.

    """
    cache = SolverCache(config) if cache is None else cache
    return cache.solve(problem, "lp", basis=basis)


def solve_milp(
    problem: "LinearProblem", config: SolverConfig, cache: Optional[SolverCache] = None
) -> "Solution":
    """Solve a mixed integer linear program."""
    cache = SolverCache(config) if cache is None else cache
    return cache.solve(problem, "milp")


def solve_qp(
    problem: "LinearProblem", config: SolverConfig, cache: Optional[SolverCache] = None
) -> "Solution":
    """Solve a (convex, diagonal) quadratic program."""
    cache = SolverCache(config) if cache is None else cache
    return cache.solve(problem, "qp")


def fix_objective_as_constraint(
    problem: "LinearProblem", objective: np.ndarray, bound: float, sense: str
) -> "LinearProblem":
    """Fix an objective as an additional constraint.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to extend. It is not modified.
    objective : numpy.ndarray
        The objective coefficients, one per column of `problem`.
    bound : float
        The value the objective must at least (for "max") or at most (for
        "min") attain.
    sense : {"max", "min"}
        The optimization direction of the objective.

    Returns
    -------
    fvapy.LinearProblem
        A copy of the problem with one more row.

    """
    csense = "G" if sense == "max" else "L"
    return problem.add_rows(np.atleast_2d(objective), [bound], [csense])


def check_solver_status(status: str = None, raise_error: bool = False) -> None:
    """Perform standard checks on a solver's status.

    Parameters
    ----------
    status: str, optional
        The status string obtained from the solver (default None).
    raise_error: bool, optional
        If True, raise error or display warning if False (default False).

    Raises
    ------
    OptimizationError
        If `status` is None or is not optimal and `raise_error` is set to
        True.

    """
    if status == OPTIMAL:
        return None
    elif (status in has_primals) and not raise_error:
        logger.warning(f"Solver status is '{status}'.")
    elif status is None:
        raise OptimizationError("Problem is not optimized yet.")
    else:
        exception_cls = OPTLANG_TO_EXCEPTIONS_DICT.get(status, OptimizationError)
        raise exception_cls(f"Solver status is '{status}'.")

