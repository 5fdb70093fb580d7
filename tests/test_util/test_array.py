"""Test functions of array.py."""

import numpy as np

from fvapy.util import nullspace, support_components


def test_nullspace() -> None:
    """Test that the nullspace of a cycle is found."""
    S = np.array([[-1, 0, 1], [1, -1, 0], [0, 1, -1]], dtype=float)
    ns = nullspace(S)
    assert ns.shape == (3, 1)
    assert np.allclose(S @ ns, 0)
    assert np.allclose(np.abs(ns[:, 0]), 1 / np.sqrt(3))


def test_nullspace_full_rank() -> None:
    """Test that a full rank matrix has an empty nullspace."""
    assert nullspace(np.eye(3)).shape == (3, 0)


def test_nullspace_empty() -> None:
    """Test matrices without rows or columns."""
    assert nullspace(np.zeros((0, 2))).shape == (2, 2)
    assert nullspace(np.zeros((2, 0))).shape == (0, 0)


def test_support_components() -> None:
    """Test that rows sharing a basis vector are connected."""
    basis = np.array(
        [
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 2.0],
            [0.0, 0.0, 1e-9],
            [0.0, 0.0, 0.0],
        ]
    )
    n_components, labels = support_components(basis, 1e-6)
    assert n_components == 2
    assert labels[0] == labels[1] == labels[2]
    assert labels[3] != labels[0]
    assert labels[4] == -1
    assert labels[5] == -1


def test_support_components_empty() -> None:
    """Test a basis without any vector."""
    n_components, labels = support_components(np.zeros((3, 0)), 0.0)
    assert n_components == 0
    assert np.array_equal(labels, [-1, -1, -1])
