"""Helper functions for array operations."""

from typing import Tuple

import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import connected_components


def nullspace(A: np.ndarray, atol: float = 1e-13, rtol: float = 0.0) -> np.ndarray:
    r"""Compute an approximate basis for the nullspace of A.

    The algorithm used by this function is based on the Singular Value
    Decomposition (SVD) of `A`.

    Parameters
    ----------
    A : numpy.ndarray
        `A` should be at most 2-D. 1-D array with length k will be treated
        as a 2-D with shape (1, k).
    atol : float, optional
        The absolute tolerance for a zero singular value. Singular values
        smaller than `atol` are considered to be zero (default 1e-13).
    rtol : float, optional
        The relative tolerance. Singular values less than `rtol * smax` are
        considered to be zero, where `smax` is the largest singular value
        (default 0.0).

    Returns
    -------
    numpy.ndarray
        If `A` is an array with shape (m, k), then `ns` will be an array
        with shape (k, n), where `n` is the estimated dimension of the
        nullspace of `A`.  The columns of `ns` are a basis for the
        nullspace; each element in numpy.dot(A, ns) will be approximately
        zero.

    Notes
    -----
    If both `atol` and `rtol` are positive, the combined tolerance is the
    maximum of the two; that is:

    .. math:: \mathtt{tol} = \max(\mathtt{atol}, \mathtt{rtol} * \mathtt{smax})

    Singular values smaller than `tol` are considered to be zero.

    """
    A = np.atleast_2d(A)
    if A.shape[1] == 0:
        return np.zeros((0, 0))
    if A.shape[0] == 0:
        return np.eye(A.shape[1])
    _, s, vh = np.linalg.svd(A)
    tol = max(atol, rtol * s[0]) if len(s) > 0 else atol
    nnz = (s >= tol).sum()
    ns = vh[nnz:].conj().T
    return ns


def support_components(basis: np.ndarray, zero_cutoff: float) -> Tuple[int, np.ndarray]:
    """Group the rows of a basis that are connected through shared columns.

    Two rows belong to the same component if they are both nonzero in at
    least one column, directly or through a chain of other rows.

    Parameters
    ----------
    basis : numpy.ndarray
        A (rows x vectors) matrix, for instance a nullspace basis.
    zero_cutoff : float
        Entries with an absolute value not above the cutoff count as zero.

    Returns
    -------
    int
        The number of components.
    numpy.ndarray
        The component label of every row, -1 for rows that are zero in all
        columns.

    """
    support = sparse.csr_matrix(np.abs(basis) > zero_cutoff, dtype=float)
    in_any = np.asarray(support.sum(axis=1)).ravel() > 0
    labels = np.full(basis.shape[0], -1, dtype=int)
    if not in_any.any():
        return 0, labels
    support = support[in_any]
    adjacency = support @ support.T
    n_components, component = connected_components(adjacency, directed=False)
    labels[in_any] = component
    return n_components, labels
