"""Provide flux variability analysis with optional loop removal."""


import logging
from types import ModuleType
from typing import (
    TYPE_CHECKING,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd

from ..core.configuration import Configuration
from ..core.problem import LinearProblem, MixedIntegerProblem
from ..core.solution import Solution
from ..exceptions import IncompatibleOptions, InfeasibleOrUnbounded, SolveFailed
from ..util.process_pool import ProcessPool
from ..util.solver import SolverCache, SolverConfig, fix_objective_as_constraint
from .helpers import quantize_objective
from .loopless import (
    LoopInfo,
    LoopPolicy,
    add_loop_law_constraints,
    find_loops,
    fix_loop_directions,
    has_capped_bounds,
    preprocess_llc,
    restore_original_bounds,
    update_llcs,
)
from .norms import NormMethod, NormMinimizer, get_norm_minimizer


if TYPE_CHECKING:
    from ..core.model import Model


__all__ = ("FluxVariabilityResult", "flux_variability_analysis")

logger = logging.getLogger(__name__)
configuration = Configuration()


class FluxVariabilityResult(NamedTuple):
    """The flux ranges of the queried reactions.

    Attributes
    ----------
    minimum, maximum : pandas.Series
        The extreme fluxes indexed by the queried reaction identifiers.
    v_min, v_max : pandas.DataFrame or None
        One representative flux distribution per queried reaction (columns)
        over all model reactions (index). Only present if a norm method was
        requested.

    """

    minimum: pd.Series
    maximum: pd.Series
    v_min: Optional[pd.DataFrame] = None
    v_max: Optional[pd.DataFrame] = None

    def to_frame(self) -> pd.DataFrame:
        """Return the ranges as a frame with "minimum" and "maximum" columns."""
        return pd.DataFrame({"minimum": self.minimum, "maximum": self.maximum})


class _Templates(NamedTuple):
    """The read-only state shared by all FVA steps."""

    lp: LinearProblem
    milp: Optional[MixedIntegerProblem]
    policy: LoopPolicy
    rxn_in_loops: Optional[np.ndarray]
    always_llc: bool
    rxn_always_on: Optional[np.ndarray]
    comp_always_on: Optional[np.ndarray]
    use_rxn_link: bool
    capped: bool
    lb: np.ndarray
    ub: np.ndarray
    reactions: Tuple[str, ...]
    minimizer: Optional[NormMinimizer]
    basis: Optional[tuple]


def _init_worker(templates: _Templates, config: SolverConfig) -> None:
    """Initialize the global state of a worker for multiprocessing.

    Parameters
    ----------
    templates : _Templates
        The problems and loop data of the analysis.
    config : SolverConfig
        The solver configuration, bound anew in every worker.

    """
    global _templates
    global _cache
    global _milp
    _templates = templates
    _cache = SolverCache(config)
    # The private working copy of the relax and restore cycle.
    _milp = None if templates.milp is None else templates.milp.copy()


def _objective(problem: LinearProblem, index: int) -> np.ndarray:
    c = np.zeros(problem.n_columns)
    c[index] = 1.0
    return c


def _optimize_reaction(index: int, sense: str) -> Solution:
    """Solve for the extreme flux of one reaction."""
    global _milp
    templates = _templates
    policy = templates.policy
    if not policy.removes_loops:
        problem = templates.lp.with_objective(_objective(templates.lp, index), sense)
        return _cache.solve(problem, "lp", basis=templates.basis)
    if policy.is_localized:
        in_loop = templates.rxn_in_loops[index, 1 if sense == "max" else 0]
        if not templates.always_llc and not in_loop:
            problem = templates.lp.with_objective(
                _objective(templates.lp, index), sense
            )
            return _cache.solve(problem, "lp", basis=templates.basis)
        _milp = restore_original_bounds(_milp, _milp.rhs0)
        _milp = update_llcs(
            _milp,
            templates.comp_always_on,
            templates.rxn_always_on,
            rxn_id=index if in_loop else None,
            use_rxn_link=templates.use_rxn_link,
        )
        problem = _milp.with_objective(_objective(_milp, index), sense)
    else:
        problem = templates.milp.with_objective(
            _objective(templates.milp, index), sense
        )
    solution = _cache.solve(problem, "milp")
    if templates.capped and solution.is_optimal:
        # The loop law caps infinite bounds, so the extremum is taken from the
        # linear problem that keeps the loop directions of the solution.
        lp = templates.lp.with_objective(_objective(templates.lp, index), sense)
        solution = _cache.solve(fix_loop_directions(lp, problem, solution.x), "lp")
    return solution


def _extreme_flux(solution: Solution, index: int, sense: str) -> float:
    """Read the extreme flux from the solution vector."""
    templates = _templates
    if solution.is_optimal:
        return float(
            np.clip(solution.x[index], templates.lb[index], templates.ub[index])
        )
    elif solution.is_unbounded:
        return np.inf if sense == "max" else -np.inf
    reaction = templates.reactions[index]
    raise SolveFailed(
        f"Could not {'maximize' if sense == 'max' else 'minimize'} the flux of "
        f"'{reaction}': the solver status is '{solution.status}'.",
        reaction=reaction,
        status=solution.status,
    )


def _representative(
    solution: Solution, index: int, sense: str, value: float
) -> np.ndarray:
    """Pick a flux distribution at the extreme flux."""
    templates = _templates
    n = len(templates.reactions)
    if not np.isfinite(value):
        return np.full(n, np.nan)
    result = templates.minimizer.minimize(
        templates.lp, solution, index, value, n, _cache
    )
    if not result.is_optimal:
        reaction = templates.reactions[index]
        raise SolveFailed(
            f"Could not find a {templates.minimizer.method.value} flux distribution "
            f"at the {sense}imum of '{reaction}': the solver status is "
            f"'{result.status}'.",
            reaction=reaction,
            status=result.status,
        )
    return result.x[:n]


def _fva_step(
    task: Tuple[int, int, str, Optional[Solution]]
) -> Tuple[int, str, float, Optional[np.ndarray]]:
    """Take a step for calculating FVA.

    Parameters
    ----------
    task : tuple
        The position of the reaction in the output, its index in the model,
        the direction {"min", "max"} and, for reactions already found at
        their bound, the solution that showed it.

    Returns
    -------
    tuple
        The position, the direction, the extreme flux and a representative
        flux distribution if requested.

    """
    position, index, sense, presolved = task
    templates = _templates
    if presolved is None:
        solution = _optimize_reaction(index, sense)
        value = _extreme_flux(solution, index, sense)
    else:
        solution = presolved
        value = float(templates.ub[index] if sense == "max" else templates.lb[index])
    vector = None
    if templates.minimizer is not None:
        vector = _representative(solution, index, sense, value)
    return position, sense, value, vector


def _boundary_presolve(
    templates: _Templates, indices: np.ndarray, cache: SolverCache
) -> Dict[str, Dict[int, Solution]]:
    """Find queried reactions that attain a bound in an aggregate solve.

    The summed flux of all queried reactions is maximized and minimized once.
    A reaction whose flux equals its upper bound in the maximization (lower
    bound in the minimization) is known to reach that bound.

    Returns
    -------
    dict
        Maps "max" and "min" to the positions of the reactions found at their
        bound and the solution showing it.

    """
    if templates.milp is None:
        template, problem_type = templates.lp, "lp"
    else:
        template, problem_type = templates.milp, "milp"
    c = np.zeros(template.n_columns)
    c[indices] = 1.0
    pinned: Dict[str, Dict[int, Solution]] = {"max": {}, "min": {}}
    for sense, bound in (("max", templates.ub), ("min", templates.lb)):
        solution = cache.solve(template.with_objective(c, sense), problem_type)
        if not solution.is_optimal:
            logger.debug(
                f"The aggregate {sense}imization ended with status '{solution.status}'."
            )
            continue
        for position, index in enumerate(indices):
            if solution.x[index] == bound[index]:
                pinned[sense][position] = solution
    return pinned


def flux_variability_analysis(
    model: "Model",
    opt_percentage: float = 100.0,
    sense: Optional[str] = None,
    reaction_list: Optional[Iterable[str]] = None,
    verbosity: int = 0,
    loop_policy: Union[LoopPolicy, str, None] = LoopPolicy.NONE,
    method: Union[NormMethod, str, None] = None,
    solver: Union[str, ModuleType, None] = None,
    solver_options: Optional[Dict] = None,
    use_warm_start: bool = False,
    processes: Optional[int] = None,
) -> FluxVariabilityResult:
    """Determine the minimum and maximum flux value for each reaction.

    Parameters
    ----------
    model : fvapy.Model
        The model for which to run the analysis. It will *not* be modified.
    opt_percentage : float, optional
        The objective must stay within this percentage of its optimum
        (default 100).
    sense : {"max", "min"}, optional
        The direction of the model objective (default `model.osense`).
    reaction_list : iterable of str, optional
        The reactions for which to obtain min/max fluxes. If None will use
        all reactions in the model (default None).
    verbosity : int, optional
        Log analysis phases at INFO level from 1 and every reaction from 2.
        Everything is logged at DEBUG level otherwise (default 0).
    loop_policy : LoopPolicy or str, optional
        Whether and how thermodynamically infeasible loops are excluded
        (default LoopPolicy.NONE).
    method : NormMethod or str, optional
        If given, a representative flux distribution is returned for every
        extreme flux, chosen by this norm method (default None).
    solver : str or optlang interface, optional
        The preferred solver (default `Configuration().solver`).
    solver_options : dict, optional
        Options for the solver, see `fvapy.util.solver.apply_options`
        (default None).
    use_warm_start : bool, optional
        Start every linear program from the basis of the reference problem.
        Only supported by GLPK (default False).
    processes : int, optional
        The number of parallel processes to run. If not explicitly passed,
        will be set from the global configuration singleton (default None).

    Returns
    -------
    FluxVariabilityResult
        The minimum and maximum fluxes and, if requested, representative
        flux distributions.

    Raises
    ------
    UnknownReaction
        If `reaction_list` contains reactions that are not in the model.
    IncompatibleOptions
        If a norm method other than FBA is requested without loop removal.
    InfeasibleOrUnbounded
        If the model objective has no optimal solution.
    SolveFailed
        If the optimization of a single reaction fails.

    Notes
    -----
    This implements the fast version as described in [1]_. Please note that
    the flux distribution containing all minimal/maximal fluxes does not have
    to be a feasible solution for the model. Fluxes are minimized/maximized
    individually and a single minimal flux might require all others to be
    suboptimal.

    Minimizing the Euclidean norm of a representative flux distribution does
    not remove loops that contain the optimized reaction itself.

    References
    ----------
    .. [1] Computationally efficient flux variability analysis.
       Gudmundsson S, Thiele I.
       BMC Bioinformatics. 2010 Sep 29;11:489.
       doi: 10.1186/1471-2105-11-489, PMID: 20920235

    """
    indices = model.reaction_indices(reaction_list)
    reaction_ids = [model.reactions[i] for i in indices]
    if not 0 < opt_percentage <= 100:
        raise ValueError(
            f"The percentage of the optimum must lie in (0, 100], got {opt_percentage}."
        )
    if sense is None:
        sense = model.osense
    if sense not in ("max", "min"):
        raise ValueError(f"Unknown objective sense '{sense}', use 'max' or 'min'.")
    policy = LoopPolicy.parse(loop_policy)
    method = None if method is None else NormMethod.parse(method)
    if method not in (None, NormMethod.FBA) and not policy.removes_loops:
        raise IncompatibleOptions(
            f"The norm method '{method.value}' is not supported without loop "
            "removal. Use 'FBA' or choose a loop policy."
        )
    if processes is None:
        processes = configuration.processes

    config = SolverConfig.build(solver, solver_options)
    phase = logging.INFO if verbosity >= 1 else logging.DEBUG
    progress = logging.INFO if verbosity > 1 else logging.DEBUG
    cache = SolverCache(config)
    n = model.n_reactions

    lp = model.to_problem().with_objective(model.c, sense)
    info: Optional[LoopInfo] = None
    always_llc, rxn_always_on, comp_always_on = False, None, None
    use_rxn_link = False
    if policy.removes_loops:
        logger.log(phase, f"Finding loops ({policy.value}).")
        info = find_loops(model, policy, config)
        logger.log(
            phase,
            f"{len(info.loop_reactions)} reactions in {info.n_components} "
            "connected components can form loops.",
        )
        if policy is LoopPolicy.LOCALIZED_EFM:
            if info.rxn_link is None:
                logger.warning(
                    "No elementary flux modes were found. Falling back to "
                    "localization by connected components."
                )
            else:
                use_rxn_link = True
        if policy.is_localized:
            always_llc, rxn_always_on, comp_always_on = preprocess_llc(
                lp, info, model.n_metabolites
            )
            logger.log(
                phase,
                f"{int(rxn_always_on.sum())} loop reactions are constrained in "
                "every solve.",
            )

    # Solve the reference problem.
    if policy.removes_loops:
        reference = add_loop_law_constraints(lp, info)
        if policy.is_localized:
            reference = update_llcs(
                reference, comp_always_on, rxn_always_on, use_rxn_link=use_rxn_link
            )
        solution = cache.solve(reference, "milp")
        if solution.is_optimal and has_capped_bounds(lp, info):
            solution = cache.solve(
                fix_loop_directions(lp, reference, solution.x), "lp"
            )
    else:
        solution = cache.solve(lp, "lp")
    if not solution.is_optimal:
        raise InfeasibleOrUnbounded(
            f"There is no optimal solution for the chosen objective! The solver "
            f"status is '{solution.status}'.",
            status=solution.status,
        )
    logger.log(phase, f"The objective optimum is {solution.objective_value}.")

    if np.any(model.c != 0):
        objective_value = (
            quantize_objective(solution.objective_value, config.tolerance, sense)
            * opt_percentage
            / 100.0
        )
        lp = fix_objective_as_constraint(lp, model.c, objective_value, sense)

    minimizer = None
    if method is not None:
        minimizer = get_norm_minimizer(method, reference=solution.x[:n])
        config.interface(minimizer.problem_type)

    basis = None
    if use_warm_start:
        basis = cache.solve(lp, "lp").basis
        if basis is None:
            logger.debug("No basis is available for warm starts.")

    templates = _Templates(
        lp=lp,
        milp=None if info is None else add_loop_law_constraints(lp, info),
        policy=policy,
        rxn_in_loops=None if info is None else info.rxn_in_loops,
        always_llc=always_llc,
        rxn_always_on=rxn_always_on,
        comp_always_on=comp_always_on,
        use_rxn_link=use_rxn_link,
        capped=info is not None and has_capped_bounds(lp, info),
        lb=model.lb,
        ub=model.ub,
        reactions=model.reactions,
        minimizer=minimizer,
        basis=basis,
    )

    minimum = np.full(len(indices), np.nan)
    maximum = np.full(len(indices), np.nan)
    vectors = {
        "min": np.full((n, len(indices)), np.nan),
        "max": np.full((n, len(indices)), np.nan),
    }
    results = {"min": minimum, "max": maximum}

    if policy.is_localized:
        # An aggregate loopless solve would constrain nearly every loop.
        pinned = {"max": {}, "min": {}}
    else:
        pinned = _boundary_presolve(templates, indices, cache)
        logger.log(
            phase,
            f"{len(pinned['max'])} maxima and {len(pinned['min'])} minima are "
            "at their bounds.",
        )

    tasks: List[Tuple[int, int, str, Optional[Solution]]] = []
    for position, index in enumerate(indices):
        for what in ("min", "max"):
            presolved = pinned[what].get(position)
            if presolved is not None and minimizer is None:
                results[what][position] = (
                    model.ub[index] if what == "max" else model.lb[index]
                )
            else:
                tasks.append((position, index, what, presolved))

    processes = min(processes, len(tasks))
    if processes > 1:
        chunk_size = len(tasks) // processes
        with ProcessPool(
            processes, initializer=_init_worker, initargs=(templates, config)
        ) as pool:
            steps = pool.imap_unordered(_fva_step, tasks, chunksize=chunk_size)
            for position, what, value, vector in steps:
                results[what][position] = value
                if vector is not None:
                    vectors[what][:, position] = vector
                logger.log(progress, f"{reaction_ids[position]} {what}: {value}")
    else:
        _init_worker(templates, config)
        for position, what, value, vector in map(_fva_step, tasks):
            results[what][position] = value
            if vector is not None:
                vectors[what][:, position] = vector
            logger.log(progress, f"{reaction_ids[position]} {what}: {value}")

    if minimizer is None:
        v_min = v_max = None
    else:
        v_min = pd.DataFrame(
            vectors["min"], index=list(model.reactions), columns=reaction_ids
        )
        v_max = pd.DataFrame(
            vectors["max"], index=list(model.reactions), columns=reaction_ids
        )
    return FluxVariabilityResult(
        minimum=pd.Series(minimum, index=reaction_ids, name="minimum"),
        maximum=pd.Series(maximum, index=reaction_ids, name="maximum"),
        v_min=v_min,
        v_max=v_max,
    )
