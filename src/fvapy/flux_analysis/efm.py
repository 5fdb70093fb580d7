"""Enumerate elementary flux modes of small networks.

The modes are found with the double description method: starting from the
unit rays of the non-negative orthant, the metabolite rows are eliminated one
by one, combining each pair of adjacent rays with opposite signs. Reversible
reactions are split into a forward and a backward column first so that every
flux is non-negative.

"""

import logging
from typing import Optional

import numpy as np


logger = logging.getLogger(__name__)


class TooManyModes(RuntimeError):
    """Raised when the number of intermediate rays exceeds the limit."""


def _adjacent(supports: np.ndarray, p: int, m: int) -> bool:
    """Test whether no third ray has a support inside the union of two rays."""
    union = supports[p] | supports[m]
    inside = ~np.any(supports & ~union, axis=1)
    inside[[p, m]] = False
    return not inside.any()


def _normalize_columns(R: np.ndarray) -> np.ndarray:
    norms = np.abs(R).sum(axis=0)
    norms[norms == 0] = 1.0
    return R / norms


def elementary_modes(
    S: np.ndarray,
    reversible: np.ndarray,
    max_modes: int = 10000,
    tol: float = 1e-9,
) -> np.ndarray:
    """Return the elementary flux modes of a network.

    Parameters
    ----------
    S : numpy.ndarray
        The (dense) stoichiometric matrix of the network.
    reversible : numpy.ndarray
        A boolean mask of reversible reactions. Irreversible reactions are
        assumed to run forward.
    max_modes : int, optional
        The largest number of rays kept during the enumeration (default 10000).
    tol : float, optional
        Values below the tolerance are considered zero (default 1e-9).

    Returns
    -------
    numpy.ndarray
        The modes as columns (reactions x modes), each scaled to unit 1-norm.
        Trivial cycles of a reaction with its own reverse are excluded.

    Raises
    ------
    TooManyModes
        If more than `max_modes` rays are needed.

    """
    S = np.atleast_2d(np.asarray(S, dtype=float))
    n_rxns = S.shape[1]
    reversible = np.asarray(reversible, dtype=bool)
    backward = np.flatnonzero(reversible)
    # Split network: forward columns followed by the backward copies.
    split = np.hstack([S, -S[:, backward]])
    origin = np.concatenate([np.arange(n_rxns), backward])
    R = np.eye(split.shape[1])
    for met in range(split.shape[0]):
        values = split[met] @ R
        values[np.abs(values) <= tol] = 0.0
        plus = np.flatnonzero(values > 0)
        minus = np.flatnonzero(values < 0)
        zero = np.flatnonzero(values == 0)
        if len(plus) == 0 and len(minus) == 0:
            continue
        supports = (np.abs(R) > tol).T
        next_rays = [R[:, zero]]
        for p in plus:
            for m in minus:
                if not _adjacent(supports, p, m):
                    continue
                ray = values[p] * R[:, m] - values[m] * R[:, p]
                if np.abs(ray).sum() > tol:
                    next_rays.append(ray[:, np.newaxis])
        R = np.hstack(next_rays)
        R[np.abs(R) <= tol] = 0.0
        if R.shape[1] > max_modes:
            raise TooManyModes(
                f"More than {max_modes} rays after eliminating {met + 1} of "
                f"{split.shape[0]} metabolites."
            )
        logger.debug(f"Metabolite {met + 1}/{split.shape[0]}: {R.shape[1]} rays.")

    modes = np.zeros((n_rxns, R.shape[1]))
    np.add.at(modes, origin[: n_rxns], R[: n_rxns])
    np.add.at(modes, origin[n_rxns:], -R[n_rxns:])
    keep = np.abs(modes).sum(axis=0) > tol
    modes = _normalize_columns(modes[:, keep])
    if modes.shape[1] == 0:
        return modes
    # Duplicates arise when the split copies of a mode are both found.
    _, unique = np.unique(np.round(modes, 9), axis=1, return_index=True)
    return modes[:, np.sort(unique)]


def mode_links(
    modes: np.ndarray, n_reactions: int, columns: np.ndarray, tol: float = 1e-9
) -> np.ndarray:
    """Return which reactions share at least one elementary mode.

    Parameters
    ----------
    modes : numpy.ndarray
        Modes over a subset of the reactions (subset x modes).
    n_reactions : int
        The total number of reactions.
    columns : numpy.ndarray
        The reaction index of every row of `modes`.
    tol : float, optional
        Values below the tolerance are considered zero (default 1e-9).

    Returns
    -------
    numpy.ndarray
        A symmetric (n_reactions x n_reactions) boolean matrix.

    """
    support = (np.abs(modes) > tol).astype(int)
    shared = (support @ support.T) > 0
    link = np.zeros((n_reactions, n_reactions), dtype=bool)
    link[np.ix_(columns, columns)] = shared
    return link


def find_mode_links(
    S: np.ndarray,
    lb: np.ndarray,
    ub: np.ndarray,
    columns: np.ndarray,
    n_reactions: int,
    max_modes: int = 10000,
) -> Optional[np.ndarray]:
    """Compute the elementary mode links of a loop subnetwork.

    Reactions that can only run backward are flipped before enumerating.

    Returns
    -------
    numpy.ndarray or None
        The link matrix, None if no mode was found or the enumeration
        exceeded `max_modes`.

    """
    S = np.asarray(S, dtype=float)
    if S.shape[1] == 0:
        return None
    flip = ub[columns] <= 0
    S = S * np.where(flip, -1.0, 1.0)
    reversible = (lb[columns] < 0) & (ub[columns] > 0)
    try:
        modes = elementary_modes(S, reversible, max_modes=max_modes)
    except TooManyModes as error:
        logger.warning(f"Elementary mode enumeration stopped: {error}")
        return None
    if modes.shape[1] == 0:
        return None
    return mode_links(modes, n_reactions, columns)
