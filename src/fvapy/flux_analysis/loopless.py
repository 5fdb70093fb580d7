"""Provide loop law constraints and their localization.

The loop law forbids flux distributions that contain thermodynamically
infeasible internal cycles. It is enforced with one binary direction
indicator and one continuous "energy" variable per reaction that can cycle,
as described in [1]_. Localized loopless constraints [2]_ only enforce the
law on the parts of the network that can influence the current optimization.

References
----------
.. [1] Elimination of thermodynamically infeasible loops in steady-state
   metabolic models. Schellenberger J, Lewis NE, Palsson BO. Biophys J.
   2011 Feb 2;100(3):544-53. doi: 10.1016/j.bpj.2010.12.3707.
.. [2] Localized loopless constraints. Chan SHJ, Wang L, Dash S, Maranas CD.
   Bioinformatics. 2018 Dec 15;34(24):4248-4255.
   doi: 10.1093/bioinformatics/bty446.

"""

import logging
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple, Union

import numpy as np
from scipy import sparse
from scipy.linalg import orth

from ..core.configuration import Configuration
from ..core.problem import LinearProblem, MixedIntegerProblem
from ..util.array import nullspace, support_components
from ..util.solver import SolverCache, SolverConfig
from .efm import find_mode_links
from .helpers import normalize_cutoff, relax_bounds


__all__ = (
    "LoopPolicy",
    "LoopInfo",
    "fast_snp",
    "find_loops",
    "add_loop_law_constraints",
    "preprocess_llc",
    "update_llcs",
    "restore_original_bounds",
    "has_capped_bounds",
    "fix_loop_directions",
)

logger = logging.getLogger(__name__)

configuration = Configuration()

# Bound of the continuous loop law variables.
BDG = 1000.0


class LoopPolicy(Enum):
    """Define how thermodynamically infeasible loops are handled."""

    NONE = "none"
    ORIGINAL = "original"
    FAST_SNP = "fastSNP"
    LOCALIZED_NULLSPACE = "LLC-NS"
    LOCALIZED_EFM = "LLC-EFM"

    @classmethod
    def parse(cls, value: Union["LoopPolicy", str, None]) -> "LoopPolicy":
        """Return the policy for a member, its name or its value.

        Raises
        ------
        ValueError
            If `value` does not name a policy.

        """
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for policy in cls:
                if value.lower() in (policy.name.lower(), policy.value.lower()):
                    return policy
        raise ValueError(
            f"Unknown loop policy '{value}'. Pick one from "
            f"{', '.join(policy.value for policy in cls)}."
        )

    @property
    def removes_loops(self) -> bool:
        return self is not LoopPolicy.NONE

    @property
    def is_localized(self) -> bool:
        return self in (LoopPolicy.LOCALIZED_NULLSPACE, LoopPolicy.LOCALIZED_EFM)


class LoopInfo(NamedTuple):
    """Describe the loops of a network and their loop law constraints.

    Attributes
    ----------
    rxn_in_loops : numpy.ndarray
        An (n_reactions x 2) boolean matrix. The first column marks reactions
        that can cycle in reverse, the second reactions that can cycle forward.
    con_comp : numpy.ndarray
        The connected component of each reaction, -1 outside of loops.
    n_components : int
        The number of connected components.
    loop_reactions : numpy.ndarray
        The indices of the reactions that can cycle, in ascending order.
    nullspace : numpy.ndarray
        A basis of the loops restricted to `loop_reactions`
        (n_loop_reactions x n_loops).
    rxn_link : numpy.ndarray or None
        An (n_reactions x n_reactions) boolean matrix of reactions that share
        an elementary flux mode. None unless computed.
    bdg : float
        The bound of the continuous loop law variables.
    con : dict or None
        Maps "vU", "vL", "gU" and "gL" to the row of that loop law constraint
        for each loop reaction. Set by `add_loop_law_constraints`.
    var : dict or None
        Maps "z" and "g" to the column of the binary and the continuous loop
        law variable for each loop reaction. Set by `add_loop_law_constraints`.

    """

    rxn_in_loops: np.ndarray
    con_comp: np.ndarray
    n_components: int
    loop_reactions: np.ndarray
    nullspace: np.ndarray
    rxn_link: Optional[np.ndarray] = None
    bdg: float = BDG
    con: Optional[Dict[str, np.ndarray]] = None
    var: Optional[Dict[str, np.ndarray]] = None

    @property
    def has_loops(self) -> bool:
        """Whether any reaction can cycle."""
        return len(self.loop_reactions) > 0


def _snp_vector(solution, n: int, zero_cutoff: float) -> Optional[np.ndarray]:
    """Extract and scale a new basis vector from a Fast-SNP solution."""
    if not solution.is_optimal:
        return None
    x = solution.x[:n].copy()
    x[np.abs(x) < zero_cutoff] = 0.0
    if not x.any():
        return None
    return x / np.abs(x[x != 0]).min()


def fast_snp(
    S: sparse.spmatrix,
    lb: np.ndarray,
    ub: np.ndarray,
    config: SolverConfig,
    big_m: float = 1e4,
    zero_cutoff: Optional[float] = None,
    eps: float = 1e-3,
    seed: Optional[int] = 0,
    cache: Optional[SolverCache] = None,
) -> np.ndarray:
    r"""
    Find a minimal feasible sparse null space basis.

    Fast sparse nullspace pursuit (Fast-SNP) iteratively solves LP problems
    to find new feasible nullspace vectors that lie outside the current
    nullspace until the entire feasible nullspace is found.

    Parameters
    ----------
    S : scipy.sparse matrix
        The stoichiometric matrix of the internal network, with all exchanges
        closed.
    lb, ub : numpy.ndarray
        The flux bounds of the internal reactions. Only their directions
        matter.
    config : SolverConfig
        The solver configuration.
    big_m : float, optional
        A large constant for bounding the optimization problem (default 1e4).
    zero_cutoff : float, optional
        The cutoff to consider for zero flux (default `config.tolerance`).
    eps : float, optional
        The cutoff for ensuring the flux vector not lying in the current
        nullspace, i.e., the constraints w(I - P)v >= eps or <= -eps where P
        is the projection matrix of the current null space (default 1e-3).
    seed : int, optional
        The seed of the random projection direction (default 0).
    cache : SolverCache, optional
        A solver cache to reuse (default None).

    Returns
    -------
    numpy.ndarray
        Null space matrix with rows corresponding to the reactions of `S`.

    Notes
    -----
    The algorithm is as follows:

    1.  N = empty matrix
    2.  P = A * A^{T} where A is an orthonormal basis for N
    3.  Solve the following two LP problems:
        min \sum_{j \in J}{|v_j|}
        s.t.   \sum_{j \in J}{S_ij * v_j} = 0   \forall i \in I
               LB_j <= v_j <= UB_j              \forall j \in J
               w^{T} * (I - P) v >= eps or <= -eps (one constraint per LP)
    4a. If at least one of the LPs is feasible, choose the solution flux
        vector v with min. non-zeros. N <- [N v]. Go to Step 2.
    4b. If infeasible, terminate and N is the minimal feasible null space.

    References
    ----------
    Saa, P. A., & Nielsen, L. K. (2016). Fast-SNP: a fast matrix
    pre-processing algorithm for efficient loopless flux optimization of
    metabolic models. Bioinformatics, 32(24), 3807-3814.

    """
    logger.debug("Find minimal feasible sparse nullspace by Fast-SNP:")
    zero_cutoff = normalize_cutoff(config.tolerance, zero_cutoff)
    cache = SolverCache(config) if cache is None else cache
    S = sparse.csr_matrix(S)
    n_mets, n = S.shape
    basis = np.zeros((n, 0))
    if n == 0:
        return basis
    lb, ub = relax_bounds(lb, ub, big_m)
    # Variables are the fluxes v followed by their absolute values t.
    eye = sparse.identity(n, format="csr")
    template = LinearProblem(
        A=sparse.vstack(
            [
                sparse.hstack([S, sparse.csr_matrix((n_mets, n))]),
                sparse.hstack([eye, -eye]),
                sparse.hstack([-eye, -eye]),
            ],
            format="csr",
        ),
        b=np.zeros(n_mets + 2 * n),
        csense=["E"] * n_mets + ["L"] * (2 * n),
        c=np.concatenate([np.zeros(n), np.ones(n)]),
        lb=np.concatenate([lb, np.zeros(n)]),
        ub=np.concatenate([ub, np.full(n, big_m)]),
        osense="min",
    )
    weight = np.random.default_rng(seed).random(n)
    w_p = weight
    iteration = 0
    while basis.shape[1] < n:
        iteration += 1
        problem = template.add_rows(
            np.concatenate([w_p, np.zeros(n)])[np.newaxis, :], [eps], ["G"]
        )
        x = _snp_vector(cache.solve(problem, "lp"), n, zero_cutoff)
        problem.b[-1], problem.csense[-1] = -eps, "L"
        y = _snp_vector(cache.solve(problem, "lp"), n, zero_cutoff)

        # update N or quit
        if x is None and y is None:
            logger.debug(f"Iteration {iteration}. No more feasible basis found.")
            break
        elif x is None:
            new = y
        elif y is None:
            new = x
        else:
            # choose the sparsest solution
            new = x if np.count_nonzero(x) < np.count_nonzero(y) else y
        basis = np.hstack([basis, new[:, np.newaxis]])
        logger.debug(f"Iteration {iteration}. Feasible basis found.")

        P_N = orth(basis)
        w_p = weight - (weight @ P_N) @ P_N.T

    logger.debug(f"The nullspace dimension is {basis.shape[1]}.")
    return basis


def _loop_directions(
    S: sparse.spmatrix,
    lb: np.ndarray,
    ub: np.ndarray,
    basis: np.ndarray,
    config: SolverConfig,
    zero_cutoff: float,
    big_m: float = 1e4,
    cache: Optional[SolverCache] = None,
) -> np.ndarray:
    """Determine in which directions the reactions of a basis can cycle.

    Directions seen in the basis vectors are taken as they are. Every other
    direction a loop reaction's bounds allow is tested with one LP.

    """
    cache = SolverCache(config) if cache is None else cache
    forward = (basis > zero_cutoff).any(axis=1)
    reverse = (basis < -zero_cutoff).any(axis=1)
    in_loop = forward | reverse
    lb, ub = relax_bounds(lb, ub, big_m)
    n = S.shape[1]
    problem = LinearProblem(
        A=sparse.csr_matrix(S),
        b=np.zeros(S.shape[0]),
        csense=["E"] * S.shape[0],
        c=np.zeros(n),
        lb=lb,
        ub=ub,
    )
    for flags, osense, allowed, sign in (
        (forward, "max", ub > 0, 1.0),
        (reverse, "min", lb < 0, -1.0),
    ):
        for j in np.flatnonzero(in_loop & ~flags & allowed):
            c = np.zeros(n)
            c[j] = 1.0
            solution = cache.solve(problem.with_objective(c, osense), "lp")
            if solution.is_optimal and sign * solution.x[j] > zero_cutoff:
                flags[j] = True
    return np.column_stack([reverse, forward])


def find_loops(
    model,
    policy: LoopPolicy,
    config: SolverConfig,
    zero_cutoff: Optional[float] = None,
    big_m: float = 1e4,
    max_modes: int = 10000,
    seed: Optional[int] = 0,
) -> LoopInfo:
    """Find the reactions of a model that can take part in internal cycles.

    Parameters
    ----------
    model : fvapy.Model
        The model to analyze.
    policy : LoopPolicy
        ORIGINAL uses an SVD nullspace of the internal network and takes loop
        directions from the flux bounds. All other policies use a Fast-SNP
        basis with exact directions. LOCALIZED_EFM also links reactions that
        share an elementary flux mode.
    config : SolverConfig
        The solver configuration.
    zero_cutoff : float, optional
        Coefficients below the cutoff are zero (default `config.tolerance`).
    big_m : float, optional
        The flux bound of the internal network used by Fast-SNP (default 1e4).
    max_modes : int, optional
        The limit of the elementary mode enumeration (default 10000).
    seed : int, optional
        The seed of Fast-SNP's random direction (default 0).

    Returns
    -------
    LoopInfo
        The loop structure, without constraint indices.

    """
    zero_cutoff = normalize_cutoff(config.tolerance, zero_cutoff)
    n = model.n_reactions
    internal = np.flatnonzero(model.internal_reactions)
    S_int = model.S[:, internal]
    lb, ub = model.lb[internal], model.ub[internal]
    cache = SolverCache(config)
    if len(internal) == 0:
        basis = np.zeros((0, 0))
        directions = np.zeros((0, 2), dtype=bool)
    elif policy is LoopPolicy.ORIGINAL:
        basis = nullspace(S_int.toarray())
        basis[np.abs(basis) <= zero_cutoff] = 0.0
        directions = np.column_stack([lb < 0, ub > 0])
        directions &= (basis != 0).any(axis=1)[:, np.newaxis]
    else:
        basis = fast_snp(
            S_int, lb, ub, config, big_m=big_m, zero_cutoff=zero_cutoff, seed=seed,
            cache=cache,
        )
        directions = _loop_directions(
            S_int, lb, ub, basis, config, zero_cutoff, big_m=big_m, cache=cache
        )
    candidates = np.flatnonzero(directions.any(axis=1))
    loop_reactions = internal[candidates]
    basis = basis[candidates]
    # Drop basis vectors that vanish on the candidates.
    basis = basis[:, (basis != 0).any(axis=0)]

    rxn_in_loops = np.zeros((n, 2), dtype=bool)
    rxn_in_loops[loop_reactions] = directions[candidates]
    n_components, labels = support_components(basis, 0.0)
    con_comp = np.full(n, -1, dtype=int)
    con_comp[loop_reactions] = labels

    rxn_link = None
    if policy is LoopPolicy.LOCALIZED_EFM and len(loop_reactions) > 0:
        flags = rxn_in_loops[loop_reactions]
        sub = model.S[:, loop_reactions].toarray()
        sub = sub[np.count_nonzero(sub, axis=1) > 0]
        rxn_link = find_mode_links(
            sub,
            np.where(flags[:, 0], -1.0, 0.0),
            np.where(flags[:, 1], 1.0, 0.0),
            np.arange(len(loop_reactions)),
            len(loop_reactions),
            max_modes=max_modes,
        )
        if rxn_link is not None:
            link = np.zeros((n, n), dtype=bool)
            link[np.ix_(loop_reactions, loop_reactions)] = rxn_link
            rxn_link = link

    logger.debug(
        f"{len(loop_reactions)} reactions in {basis.shape[1]} loops forming "
        f"{n_components} connected components."
    )
    return LoopInfo(
        rxn_in_loops=rxn_in_loops,
        con_comp=con_comp,
        n_components=n_components,
        loop_reactions=loop_reactions,
        nullspace=basis,
        rxn_link=rxn_link,
    )


def add_loop_law_constraints(
    problem: LinearProblem, loop_info: LoopInfo, big_m: Optional[float] = None
) -> MixedIntegerProblem:
    """Add loop law constraints to a problem whose first columns are fluxes.

    For every loop reaction j a binary z_j and a continuous g_j in
    [-BDg, BDg] are added with the rows

    - vU: v_j - ub_j z_j <= 0
    - vL: v_j + lb_j z_j >= lb_j
    - gU: g_j + (BDg + 1) z_j <= BDg
    - gL: -g_j - (BDg + 1) z_j <= -1

    followed by one row N^T g = 0 per loop in the basis N.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem to extend. It is not modified.
    loop_info : LoopInfo
        The loop structure from `find_loops`.
    big_m : float, optional
        Replaces infinite flux bounds (default the largest finite bound of the
        problem, at least `Configuration().upper_bound`).

    Returns
    -------
    fvapy.MixedIntegerProblem
        The extended problem. Its `loop_info` carries the row and column
        indices of the loop law and its `rhs0` the restoring right-hand side.

    """
    if big_m is None:
        bounds = np.abs(np.concatenate([problem.lb, problem.ub]))
        big_m = max(configuration.upper_bound, *bounds[np.isfinite(bounds)])
    loop = loop_info.loop_reactions
    k = len(loop)
    n0, m0 = problem.n_columns, problem.n_rows
    bdg = loop_info.bdg
    lb = np.maximum(problem.lb[loop], -big_m)
    ub = np.minimum(problem.ub[loop], big_m)
    if k == 0:
        return MixedIntegerProblem(
            A=problem.A,
            b=problem.b,
            csense=problem.csense,
            c=problem.c,
            lb=problem.lb,
            ub=problem.ub,
            osense=problem.osense,
            vtype=problem.vtype,
            loop_info=loop_info._replace(
                con={key: np.zeros(0, dtype=int) for key in ("vU", "vL", "gU", "gL")},
                var={key: np.zeros(0, dtype=int) for key in ("z", "g")},
            ),
        )

    extended = problem.add_columns(k, 0.0, 1.0, vtype="B").add_columns(k, -bdg, bdg)
    rows = np.arange(k)
    flux = sparse.csr_matrix((np.ones(k), (rows, loop)), shape=(k, n0))
    eye = sparse.identity(k, format="csr")
    nothing = sparse.csr_matrix((k, k))
    n_loops = loop_info.nullspace.shape[1]
    law = sparse.vstack(
        [
            sparse.hstack([flux, -sparse.diags(ub), nothing]),
            sparse.hstack([flux, sparse.diags(lb), nothing]),
            sparse.hstack([sparse.csr_matrix((k, n0)), (bdg + 1) * eye, eye]),
            sparse.hstack([sparse.csr_matrix((k, n0)), -(bdg + 1) * eye, -eye]),
            sparse.hstack(
                [
                    sparse.csr_matrix((n_loops, n0 + k)),
                    sparse.csr_matrix(loop_info.nullspace.T),
                ]
            ),
        ],
        format="csr",
    )
    extended = extended.add_rows(
        law,
        np.concatenate(
            [np.zeros(k), lb, np.full(k, bdg), np.full(k, -1.0), np.zeros(n_loops)]
        ),
        ["L"] * k + ["G"] * k + ["L"] * (2 * k) + ["E"] * n_loops,
    )
    info = loop_info._replace(
        con={
            "vU": m0 + rows,
            "vL": m0 + k + rows,
            "gU": m0 + 2 * k + rows,
            "gL": m0 + 3 * k + rows,
        },
        var={"z": n0 + rows, "g": n0 + k + rows},
    )
    logger.debug(
        f"Added {4 * k + n_loops} loop law constraints and {2 * k} variables."
    )
    return MixedIntegerProblem(
        A=extended.A,
        b=extended.b,
        csense=extended.csense,
        c=extended.c,
        lb=extended.lb,
        ub=extended.ub,
        osense=extended.osense,
        vtype=extended.vtype,
        loop_info=info,
    )


def preprocess_llc(
    problem: LinearProblem, loop_info: LoopInfo, n_stoichiometric: int
) -> Tuple[bool, np.ndarray, np.ndarray]:
    """Find the loop reactions that need loop law constraints in every solve.

    A loop reaction is always constrained if

    1. it can cycle forward and the objective favors the forward direction,
    2. it can cycle in reverse and the objective favors the reverse direction,
    3. a loop through it could help satisfy one of the rows beyond the
       stoichiometric ones, or its bounds force it into a direction in which
       it can cycle.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem whose objective and additional rows are inspected. Its
        first columns are the fluxes.
    loop_info : LoopInfo
        The loop structure from `find_loops`.
    n_stoichiometric : int
        The number of leading mass balance rows of `problem`.

    Returns
    -------
    bool
        Whether any reaction is always constrained.
    numpy.ndarray
        A boolean mask of the always constrained reactions.
    numpy.ndarray
        A boolean mask of the connected components containing any of them.

    """
    n = loop_info.rxn_in_loops.shape[0]
    reverse, forward = loop_info.rxn_in_loops[:, 0], loop_info.rxn_in_loops[:, 1]
    c = problem.c[:n] if problem.osense == "max" else -problem.c[:n]
    favored = (forward & (c > 0)) | (reverse & (c < 0))

    coupling = problem.A[n_stoichiometric:, :n].toarray()
    helps = np.zeros(n, dtype=bool)
    for row, b, sense in zip(
        coupling, problem.b[n_stoichiometric:], problem.csense[n_stoichiometric:]
    ):
        several = np.count_nonzero(row) > 1
        if sense in ("L", "E"):
            # A loop lowering the left-hand side relaxes an upper limit.
            lowers = (forward & (row < 0)) | (reverse & (row > 0))
            helps |= lowers & (several or b < 0)
        if sense in ("G", "E"):
            raises = (forward & (row > 0)) | (reverse & (row < 0))
            helps |= raises & (several or b > 0)
    helps |= ((problem.lb[:n] > 0) & forward) | ((problem.ub[:n] < 0) & reverse)

    always_on = (favored | helps) & loop_info.rxn_in_loops.any(axis=1)
    components = np.zeros(loop_info.n_components, dtype=bool)
    components[loop_info.con_comp[always_on]] = True
    return bool(always_on.any()), always_on, components


def _set_loop_law(
    problem: MixedIntegerProblem, info: LoopInfo, rows, variables
) -> None:
    """Tighten (True) or relax (False) loop law rows and variables in place."""
    con, var = info.con, info.var
    relaxations = (("vU", np.inf), ("vL", -np.inf), ("gU", np.inf), ("gL", np.inf))
    for key, relaxed in relaxations:
        problem.b[con[key]] = np.where(rows, problem.rhs0[con[key]], relaxed)
    problem.ub[var["z"]] = np.where(variables, 1.0, 0.0)
    problem.lb[var["g"]] = np.where(variables, -info.bdg, 0.0)
    problem.ub[var["g"]] = np.where(variables, info.bdg, 0.0)


def update_llcs(
    problem: MixedIntegerProblem,
    con_comp_always_on: np.ndarray,
    rxn_in_loops_always_on: np.ndarray,
    loop_info: Optional[LoopInfo] = None,
    rxn_id: Optional[int] = None,
    use_rxn_link: bool = False,
) -> MixedIntegerProblem:
    """Localize the loop law to the components relevant for one solve.

    Parameters
    ----------
    problem : fvapy.MixedIntegerProblem
        A problem from `add_loop_law_constraints`. It is not modified.
    con_comp_always_on : numpy.ndarray
        A boolean mask of the components constrained in every solve.
    rxn_in_loops_always_on : numpy.ndarray
        A boolean mask of the reactions constrained in every solve.
    loop_info : LoopInfo, optional
        Defaults to the `loop_info` of the problem.
    rxn_id : int, optional
        The reaction being optimized, if it can cycle in the optimized
        direction. Its component is constrained as well.
    use_rxn_link : bool, optional
        Only keep the rows of reactions sharing an elementary flux mode with
        an active reaction (default False).

    Returns
    -------
    fvapy.MixedIntegerProblem
        A copy with the loop law relaxed outside of the active set.

    """
    info = problem.loop_info if loop_info is None else loop_info
    problem = problem.copy()
    active = np.array(con_comp_always_on, dtype=bool, copy=True)
    if rxn_id is not None and info.con_comp[rxn_id] >= 0:
        active[info.con_comp[rxn_id]] = True
    variables = active[info.con_comp[info.loop_reactions]]
    if use_rxn_link and info.rxn_link is not None:
        rxn_on = np.array(rxn_in_loops_always_on, dtype=bool, copy=True)
        if rxn_id is not None:
            rxn_on[rxn_id] = True
        rows = info.rxn_link[rxn_on][:, info.loop_reactions].any(axis=0)
    else:
        rows = variables
    _set_loop_law(problem, info, rows, variables)
    return problem


def restore_original_bounds(
    problem: MixedIntegerProblem, rhs0: np.ndarray, loop_info: Optional[LoopInfo] = None
) -> MixedIntegerProblem:
    """Return a copy with the snapshot right-hand side and default loop law bounds."""
    info = problem.loop_info if loop_info is None else loop_info
    problem = problem.copy()
    problem.b = np.array(rhs0, dtype=float, copy=True)
    k = len(info.loop_reactions)
    _set_loop_law(problem, info, np.ones(k, dtype=bool), np.ones(k, dtype=bool))
    return problem


def has_capped_bounds(problem: LinearProblem, loop_info: LoopInfo) -> bool:
    """Whether the loop law replaces an infinite bound of a loop reaction."""
    loop = loop_info.loop_reactions
    return not (
        np.isfinite(problem.lb[loop]).all() and np.isfinite(problem.ub[loop]).all()
    )


def fix_loop_directions(
    problem: LinearProblem, milp: MixedIntegerProblem, x: np.ndarray
) -> LinearProblem:
    """Return a copy of `problem` with loop reactions kept in the directions of `x`.

    Every loop reaction whose loop law rows are enforced in `milp` keeps the
    direction chosen by its binary variable in the solution `x` of `milp`.
    The continuous loop law variables of `x` remain a certificate for any
    flux distribution with these directions, so the returned linear problem
    only has loopless solutions. Unlike `milp` it keeps the original
    (possibly infinite) flux bounds.

    Parameters
    ----------
    problem : fvapy.LinearProblem
        The problem without loop law, whose columns are the leading columns
        of `milp`.
    milp : fvapy.MixedIntegerProblem
        The problem with loop law constraints that `x` solves.
    x : numpy.ndarray
        The values of all variables of `milp`.

    """
    info = milp.loop_info
    fixed = problem.copy()
    loop = info.loop_reactions
    enforced = np.isfinite(milp.b[info.con["vU"]])
    forward = x[info.var["z"]] > 0.5
    up = loop[enforced & forward]
    down = loop[enforced & ~forward]
    fixed.lb[up] = np.maximum(fixed.lb[up], 0.0)
    fixed.ub[down] = np.minimum(fixed.ub[down], 0.0)
    return fixed
