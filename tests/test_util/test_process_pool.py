"""Test the behaviour of the ProcessPool class."""


import os
from typing import Iterable, Tuple

import pytest
from pytest_mock import MockerFixture

from fvapy.util import ProcessPool


def dummy_initializer(*args: Iterable) -> Tuple:
    """Implement a 'do nothing' function that accepts initialization arguments."""
    return args


def square(num: int) -> int:
    """Return the square of an integer."""
    return num * num


def fail_on_three(num: int) -> int:
    """Return the number unless it is three."""
    if num == 3:
        raise ValueError("three")
    return num


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
@pytest.mark.parametrize(
    "attributes",
    [
        {},
        {"processes": 2},
        {"initializer": dummy_initializer},
        {"initializer": dummy_initializer, "initargs": (1, "2", [3], {"a": 4})},
        {"maxtasksperchild": 1},
    ],
)
def test_init(attributes: dict) -> None:
    """Test that a process pool can be initialized with each of its arguments."""
    with ProcessPool(**attributes):
        pass


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
def test_close(mocker: MockerFixture) -> None:
    """Test that the composed pool is closed as well."""
    pool = ProcessPool(processes=3)
    mock = mocker.patch.object(pool, "_pool", autospec=True)
    pool.close()
    mock.close.assert_called_once()


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
def test_with_context(mocker: MockerFixture) -> None:
    """Test that the composed pool's context is managed as well."""
    pool = ProcessPool(processes=3)
    mock = mocker.patch.object(pool, "_pool", autospec=True)
    with pool:
        pass
    mock.__enter__.assert_called_once()
    mock.close.assert_called_once()
    mock.join.assert_called_once()
    mock.terminate.assert_not_called()
    mock.__exit__.assert_called_once()


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
def test_terminate_on_error(mocker: MockerFixture) -> None:
    """Test that outstanding work is abandoned when the block raises."""
    pool = ProcessPool(processes=3)
    mock = mocker.patch.object(pool, "_pool", autospec=True)
    mock.__exit__.return_value = None
    with pytest.raises(RuntimeError):
        with pool:
            raise RuntimeError("failed task")
    mock.terminate.assert_called_once()
    mock.close.assert_not_called()


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
def test_imap_unordered() -> None:
    """Test that mapped function results can be iterated in any order."""
    with ProcessPool(processes=3) as pool:
        assert sum(pool.imap_unordered(square, [2] * 6)) == 24


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
def test_task_failure_propagates() -> None:
    """Test that an exception in a worker reaches the caller."""
    with pytest.raises(ValueError, match="three"):
        with ProcessPool(processes=2) as pool:
            list(pool.imap_unordered(fail_on_three, range(6)))
