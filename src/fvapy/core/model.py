"""Define the constraint-based model in matrix form."""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse

from ..exceptions import UnknownReaction
from .configuration import Configuration


if TYPE_CHECKING:
    from .problem import LinearProblem


logger = logging.getLogger(__name__)

configuration = Configuration()

SENSES = ("E", "L", "G")


def _as_vector(value, length: int, name: str, fill: float = 0.0) -> np.ndarray:
    """Convert an optional scalar or sequence to a read-only float vector."""
    if value is None:
        vector = np.full(length, fill, dtype=float)
    else:
        vector = np.array(value, dtype=float).reshape(-1)
        if vector.size == 1 and length != 1:
            vector = np.full(length, vector[0])
    if vector.shape != (length,):
        raise ValueError(
            f"Expected {length} values for '{name}' but got {vector.size}."
        )
    vector.setflags(write=False)
    return vector


def _as_senses(value, length: int, name: str) -> np.ndarray:
    """Convert constraint senses to a read-only character vector."""
    if value is None:
        senses = np.full(length, "E", dtype="<U1")
    elif isinstance(value, str) and len(value) == length:
        senses = np.array(list(value), dtype="<U1")
    else:
        senses = np.array(value, dtype="<U1").reshape(-1)
    if senses.shape != (length,):
        raise ValueError(
            f"Expected {length} constraint senses for '{name}' but got {senses.size}."
        )
    unknown = set(senses) - set(SENSES)
    if unknown:
        raise ValueError(
            f"Unknown constraint sense(s) {', '.join(sorted(unknown))} in '{name}'. "
            f"Valid senses are {', '.join(SENSES)}."
        )
    senses.setflags(write=False)
    return senses


def _as_matrix(value) -> sparse.csr_matrix:
    matrix = sparse.csr_matrix(value, dtype=float, copy=True)
    matrix.eliminate_zeros()
    matrix.data.setflags(write=False)
    return matrix


class Model:
    """A stoichiometric model of a metabolic network.

    The model is an immutable value. Every analysis derives its own problems
    from it and none of them write back.

    Parameters
    ----------
    S : array-like or scipy.sparse matrix
        The stoichiometric matrix (metabolites x reactions).
    lb, ub : array-like
        The flux bounds of the reactions.
    c : array-like, optional
        The objective coefficients (default all zero).
    osense : {"max", "min"}, optional
        The optimization direction of the objective (default "max").
    csense : str or sequence of {"E", "L", "G"}, optional
        The sense of each metabolite row (default all "E").
    b : array-like, optional
        The right-hand side of the metabolite rows (default all zero).
    reactions, metabolites : sequence of str, optional
        Identifiers, "R1", "R2", ... and "M1", "M2", ... by default.
    C : array-like or scipy.sparse matrix, optional
        Additional coupling constraints on the fluxes (rows x reactions).
    d : array-like, optional
        The right-hand side of the coupling constraints (default all zero).
    dsense : str or sequence of {"E", "L", "G"}, optional
        The sense of each coupling constraint (default all "L").
    name : str, optional
        A human readable name of the model.

    Attributes
    ----------
    S : scipy.sparse.csr_matrix
    lb, ub, c, b, d : numpy.ndarray
    csense, dsense : numpy.ndarray
    C : scipy.sparse.csr_matrix
    reactions, metabolites : tuple of str
    osense : str
    name : str

    """

    def __init__(
        self,
        S,
        lb,
        ub,
        c=None,
        osense: str = "max",
        csense=None,
        b=None,
        reactions: Optional[Sequence[str]] = None,
        metabolites: Optional[Sequence[str]] = None,
        C=None,
        d=None,
        dsense=None,
        name: Optional[str] = None,
    ) -> None:
        """Initialize and validate a model."""
        self.S = _as_matrix(S)
        n_mets, n_rxns = self.S.shape
        self.lb = _as_vector(lb, n_rxns, "lb")
        self.ub = _as_vector(ub, n_rxns, "ub")
        self.c = _as_vector(c, n_rxns, "c")
        self.b = _as_vector(b, n_mets, "b")
        self.csense = _as_senses(csense, n_mets, "csense")
        if osense not in ("max", "min"):
            raise ValueError(f"Unknown objective sense '{osense}', use 'max' or 'min'.")
        self.osense = osense
        if C is None:
            self.C = _as_matrix(sparse.csr_matrix((0, n_rxns)))
        else:
            self.C = _as_matrix(C)
        if self.C.shape[1] != n_rxns:
            raise ValueError(
                f"The coupling constraints have {self.C.shape[1]} columns but the "
                f"model has {n_rxns} reactions."
            )
        n_coupling = self.C.shape[0]
        self.d = _as_vector(d, n_coupling, "d")
        self.dsense = _as_senses(
            "L" * n_coupling if dsense is None else dsense, n_coupling, "dsense"
        )
        if reactions is None:
            reactions = [f"R{i + 1}" for i in range(n_rxns)]
        if metabolites is None:
            metabolites = [f"M{i + 1}" for i in range(n_mets)]
        self.reactions = tuple(str(rxn) for rxn in reactions)
        self.metabolites = tuple(str(met) for met in metabolites)
        if len(self.reactions) != n_rxns:
            raise ValueError(
                f"Expected {n_rxns} reaction identifiers but got {len(self.reactions)}."
            )
        if len(self.metabolites) != n_mets:
            raise ValueError(
                f"Expected {n_mets} metabolite identifiers but got "
                f"{len(self.metabolites)}."
            )
        if len(set(self.reactions)) != n_rxns:
            raise ValueError("Reaction identifiers must be unique.")
        if np.any(self.lb > self.ub):
            bad = [self.reactions[i] for i in np.flatnonzero(self.lb > self.ub)]
            raise ValueError(
                f"The lower bound is larger than the upper bound for: {', '.join(bad)}."
            )
        self.name = name
        self._index = {rxn: i for i, rxn in enumerate(self.reactions)}

    @classmethod
    def from_reactions(
        cls,
        reactions: Dict[str, Dict[str, float]],
        bounds: Optional[Dict[str, Tuple[float, float]]] = None,
        objective: Optional[Dict[str, float]] = None,
        osense: str = "max",
        name: Optional[str] = None,
    ) -> "Model":
        """Build a model from a mapping of reactions to their stoichiometry.

        Parameters
        ----------
        reactions : dict
            Maps reaction identifiers to ``{metabolite: coefficient}``
            dictionaries. An empty dictionary defines a reaction without
            metabolites.
        bounds : dict, optional
            Maps reaction identifiers to ``(lower_bound, upper_bound)``.
            Reactions without an entry are irreversible with the configured
            default upper bound.
        objective : dict, optional
            Maps reaction identifiers to objective coefficients.
        osense : {"max", "min"}, optional
            The optimization direction (default "max").
        name : str, optional
            The model name.

        Returns
        -------
        Model
            The new model.

        Raises
        ------
        UnknownReaction
            If `bounds` or `objective` mention reactions not in `reactions`.

        Examples
        --------
        >>> model = Model.from_reactions(
        ...     {"v1": {"A": 1}, "v2": {"A": -1}},
        ...     bounds={"v1": (0, 10), "v2": (0, 10)},
        ...     objective={"v2": 1},
        ... )

        """
        bounds = {} if bounds is None else bounds
        objective = {} if objective is None else objective
        rxn_ids = list(reactions)
        unknown = [
            rxn for rxn in list(bounds) + list(objective) if rxn not in reactions
        ]
        if unknown:
            raise UnknownReaction(unknown)
        met_ids: List[str] = []
        met_index: Dict[str, int] = {}
        rows, columns, values = [], [], []
        for j, rxn in enumerate(rxn_ids):
            for met, coefficient in reactions[rxn].items():
                if met not in met_index:
                    met_index[met] = len(met_ids)
                    met_ids.append(met)
                rows.append(met_index[met])
                columns.append(j)
                values.append(coefficient)
        S = sparse.coo_matrix(
            (values, (rows, columns)), shape=(len(met_ids), len(rxn_ids))
        )
        default = (0.0, configuration.upper_bound)
        pairs = [bounds.get(rxn, default) for rxn in rxn_ids]
        lb = [pair[0] for pair in pairs]
        ub = [pair[1] for pair in pairs]
        c = [objective.get(rxn, 0.0) for rxn in rxn_ids]
        return cls(
            S,
            lb,
            ub,
            c=c,
            osense=osense,
            reactions=rxn_ids,
            metabolites=met_ids,
            name=name,
        )

    @property
    def n_reactions(self) -> int:
        """Return the number of reactions."""
        return self.S.shape[1]

    @property
    def n_metabolites(self) -> int:
        """Return the number of metabolites."""
        return self.S.shape[0]

    @property
    def internal_reactions(self) -> np.ndarray:
        """Return a mask of reactions that consume and produce a metabolite.

        Exchange, sink and demand reactions only ever touch one side of the
        network boundary and can not be part of an internal cycle.

        """
        S = self.S.tocsc()
        consumes = np.asarray((S < 0).sum(axis=0)).ravel() > 0
        produces = np.asarray((S > 0).sum(axis=0)).ravel() > 0
        return consumes & produces

    def reaction_indices(self, reactions: Optional[Iterable[str]] = None) -> np.ndarray:
        """Return the column indices of reaction identifiers.

        Parameters
        ----------
        reactions : iterable of str, optional
            The reaction identifiers, all reactions by default.

        Returns
        -------
        numpy.ndarray
            The indices in the given order.

        Raises
        ------
        UnknownReaction
            If any identifier is not part of the model.

        """
        if reactions is None:
            return np.arange(self.n_reactions)
        if isinstance(reactions, str):
            reactions = [reactions]
        reactions = list(reactions)
        missing = [rxn for rxn in reactions if rxn not in self._index]
        if missing:
            raise UnknownReaction(missing)
        return np.array([self._index[rxn] for rxn in reactions], dtype=int)

    def copy(self, **changes) -> "Model":
        """Return a copy of the model with some attributes replaced.

        Parameters
        ----------
        changes
            Any constructor argument, e.g. ``lb=...`` or ``c=...``.

        """
        arguments = {
            "S": self.S,
            "lb": self.lb,
            "ub": self.ub,
            "c": self.c,
            "osense": self.osense,
            "csense": self.csense,
            "b": self.b,
            "reactions": self.reactions,
            "metabolites": self.metabolites,
            "C": self.C,
            "d": self.d,
            "dsense": self.dsense,
            "name": self.name,
        }
        arguments.update(changes)
        return type(self)(**arguments)

    def to_problem(self) -> "LinearProblem":
        """Assemble the linear program of the model.

        The rows are the metabolite rows of `S` followed by the coupling
        constraints `C`. The columns are the reaction fluxes.

        """
        from .problem import LinearProblem

        return LinearProblem(
            A=sparse.vstack([self.S, self.C], format="csr"),
            b=np.concatenate([self.b, self.d]),
            csense=np.concatenate([self.csense, self.dsense]),
            c=self.c,
            lb=self.lb,
            ub=self.ub,
            osense=self.osense,
        )

    def __repr__(self) -> str:
        """Return a short representation of the model."""
        return (
            f"<Model {self.name or ''} at {id(self):#x}: "
            f"{self.n_metabolites} metabolites, {self.n_reactions} reactions>"
        )
