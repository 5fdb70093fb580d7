"""Provide functions to modify models."""

from typing import TYPE_CHECKING, Iterable, List, Tuple, Union
from warnings import warn

import numpy as np
from scipy import sparse


if TYPE_CHECKING:
    from ..core.model import Model


def _sink_bounds(
    lower_bound, upper_bound, n_mets: int, default_lb: float, default_ub: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Broadcast sink bounds given as scalars, vectors or an (n, 2) array."""
    if lower_bound is not None and upper_bound is None:
        bounds = np.asarray(lower_bound, dtype=float)
        if bounds.ndim == 2 and bounds.shape[1] == 2:
            return bounds[:, 0].copy(), bounds[:, 1].copy()
    lb = np.broadcast_to(
        np.asarray(default_lb if lower_bound is None else lower_bound, dtype=float),
        (n_mets,),
    ).copy()
    ub = np.broadcast_to(
        np.asarray(default_ub if upper_bound is None else upper_bound, dtype=float),
        (n_mets,),
    ).copy()
    return lb, ub


def add_sink_reactions(
    model: "Model",
    metabolites: Union[str, Iterable[str]],
    lower_bound=None,
    upper_bound=None,
) -> Tuple["Model", List[str]]:
    """Add a sink reaction for each of the given metabolites.

    A sink ``sink_<metabolite>`` consumes its metabolite with coefficient -1.
    Metabolites that are not part of the model are created.

    Parameters
    ----------
    model : fvapy.Model
        The model to extend. It will *not* be modified.
    metabolites : str or iterable of str
        The metabolite identifiers.
    lower_bound : float, array-like, optional
        The lower bounds of the sinks, either one value, one value per
        metabolite or an (n, 2) array of lower and upper bounds. Defaults to
        the smallest lower bound of the model.
    upper_bound : float, array-like, optional
        The upper bounds of the sinks, either one value or one value per
        metabolite. Defaults to the largest upper bound of the model.

    Returns
    -------
    fvapy.Model
        The extended model.
    list of str
        The identifiers of the sink reactions.

    Raises
    ------
    ValueError
        If a sink reaction already exists or the bounds have the wrong shape.

    Examples
    --------
    >>> extended, sinks = add_sink_reactions(model, ["atp_c", "adp_c"], -10, 10)

    """
    if isinstance(metabolites, str):
        metabolites = [metabolites]
    metabolites = list(metabolites)
    n_mets = len(metabolites)
    sink_ids = [f"sink_{met}" for met in metabolites]
    existing = [rxn for rxn in sink_ids if rxn in model.reactions]
    if existing:
        raise ValueError(f"The model already contains {', '.join(existing)}.")
    if model.n_reactions > 0:
        default_lb, default_ub = model.lb.min(), model.ub.max()
    else:
        default_lb, default_ub = 0.0, 0.0
    try:
        lb, ub = _sink_bounds(lower_bound, upper_bound, n_mets, default_lb, default_ub)
    except ValueError as error:
        raise ValueError(
            f"Expected bounds for {n_mets} metabolites: {error}"
        ) from error

    missing = [met for met in metabolites if met not in model.metabolites]
    if missing:
        warn(
            "The following metabolites were not found in the model and will be "
            f"added: {', '.join(missing)}",
            UserWarning,
        )
    met_ids = list(model.metabolites) + missing
    met_index = {met: i for i, met in enumerate(met_ids)}
    n_new = len(missing)

    S = sparse.vstack([model.S, sparse.csr_matrix((n_new, model.n_reactions))])
    sinks = sparse.csr_matrix(
        (
            -np.ones(n_mets),
            ([met_index[met] for met in metabolites], np.arange(n_mets)),
        ),
        shape=(len(met_ids), n_mets),
    )
    extended = model.copy(
        S=sparse.hstack([S, sinks], format="csr"),
        lb=np.concatenate([model.lb, lb]),
        ub=np.concatenate([model.ub, ub]),
        c=np.concatenate([model.c, np.zeros(n_mets)]),
        csense=np.concatenate([model.csense, np.full(n_new, "E")]),
        b=np.concatenate([model.b, np.zeros(n_new)]),
        reactions=list(model.reactions) + sink_ids,
        metabolites=met_ids,
        C=sparse.hstack([model.C, sparse.csr_matrix((model.C.shape[0], n_mets))]),
    )
    return extended, sink_ids
