"""Test the selection of representative flux distributions."""

import numpy as np
import pytest

from fvapy import Model
from fvapy.flux_analysis.moma import add_minimal_norm, add_moma
from fvapy.flux_analysis.norms import (
    FBAMinimizer,
    NormMethod,
    OneNormMinimizer,
    OriginalSolutionMinimizer,
    TwoNormMinimizer,
    ZeroNormMinimizer,
    get_norm_minimizer,
)
from fvapy.flux_analysis.parsimonious import add_pfba, add_sparse
from fvapy.util.solver import SolverCache, SolverConfig


LOOPLESS_HALF = [5.0, 5.0, 5.0, 0.0, 5.0]


@pytest.mark.parametrize(
    "value, method",
    [
        ("FBA", NormMethod.FBA),
        ("0-norm", NormMethod.NORM0),
        ("norm1", NormMethod.NORM1),
        ("2-NORM", NormMethod.NORM2),
        ("minOrigSol", NormMethod.MIN_ORIG_SOL),
        (NormMethod.NORM2, NormMethod.NORM2),
    ],
)
def test_parse_method(value, method: NormMethod) -> None:
    """Test that methods are found by name and value."""
    assert NormMethod.parse(value) is method


def test_parse_unknown_method() -> None:
    """Test that unknown methods are rejected."""
    with pytest.raises(ValueError):
        NormMethod.parse("3-norm")


def test_get_norm_minimizer() -> None:
    """Test the minimizer chosen for each method."""
    assert isinstance(get_norm_minimizer("FBA"), FBAMinimizer)
    assert isinstance(get_norm_minimizer("0-norm"), ZeroNormMinimizer)
    assert isinstance(get_norm_minimizer("1-norm"), OneNormMinimizer)
    two = get_norm_minimizer("2-norm", epsilon=1e-6)
    assert isinstance(two, TwoNormMinimizer)
    assert two.epsilon == 1e-6
    assert two.problem_type == "qp"
    closest = get_norm_minimizer("minOrigSol", reference=np.ones(3))
    assert isinstance(closest, OriginalSolutionMinimizer)
    with pytest.raises(ValueError):
        get_norm_minimizer("minOrigSol")


def test_add_pfba(loop_model: Model) -> None:
    """Test the layout of the 1-norm problem."""
    problem = add_pfba(loop_model.to_problem(), 5)
    assert problem.n_columns == 10
    assert problem.n_rows == 3 + 10
    assert problem.osense == "min"
    assert np.array_equal(problem.c, [0] * 5 + [1] * 5)


def test_add_sparse(loop_model: Model) -> None:
    """Test the layout of the 0-norm problem."""
    problem = add_sparse(loop_model.to_problem(), 5)
    assert problem.n_columns == 10
    assert problem.is_mixed_integer
    assert np.array_equal(problem.c, [0] * 5 + [1] * 5)


def test_add_moma(loop_model: Model) -> None:
    """Test the layout of the distance problem."""
    problem = add_moma(loop_model.to_problem(), np.arange(5.0), 5)
    assert problem.n_columns == 10
    assert np.array_equal(problem.b[3:], np.arange(5.0))
    assert np.array_equal(problem.F, [0] * 5 + [1] * 5)
    assert problem.osense == "min"
    assert np.array_equal(add_minimal_norm(loop_model.to_problem(), 5).F, [1] * 5)


@pytest.fixture(scope="function")
def pinned_exchange(loop_model: Model, glpk_config: SolverConfig):
    """Provide the loop model, a solution and a cache for ``EX_A == 5``."""
    cache = SolverCache(glpk_config)
    problem = loop_model.to_problem()
    solution = cache.solve(problem, "lp")
    return problem, solution, cache


def test_fba_minimizer(pinned_exchange) -> None:
    """Test that the solver's vertex is kept."""
    problem, solution, cache = pinned_exchange
    assert FBAMinimizer().minimize(problem, solution, 0, 5.0, 5, cache) is solution


@pytest.mark.parametrize("minimizer", [OneNormMinimizer(), ZeroNormMinimizer()])
def test_linear_minimizers(pinned_exchange, minimizer) -> None:
    """Test that the loop is removed from the representative."""
    problem, solution, cache = pinned_exchange
    result = minimizer.minimize(problem, solution, 0, 5.0, 5, cache)
    assert result.is_optimal
    assert result.x[:5] == pytest.approx(LOOPLESS_HALF, abs=1e-6)


def test_two_norm_minimizer(loop_model: Model, qp_solvers: str) -> None:
    """Test that the Euclidean norm removes the loop."""
    cache = SolverCache(SolverConfig.build(qp_solvers))
    problem = loop_model.to_problem()
    solution = cache.solve(problem, "lp")
    result = TwoNormMinimizer().minimize(problem, solution, 0, 5.0, 5, cache)
    assert result.is_optimal
    assert result.x[:5] == pytest.approx(LOOPLESS_HALF, abs=1e-4)


def test_original_solution_minimizer(loop_model: Model, qp_solvers: str) -> None:
    """Test that the closest flux distribution may keep part of the loop."""
    cache = SolverCache(SolverConfig.build(qp_solvers))
    problem = loop_model.to_problem()
    solution = cache.solve(problem, "lp")
    minimizer = OriginalSolutionMinimizer(np.array([10.0, 10.0, 10.0, 0.0, 10.0]))
    result = minimizer.minimize(problem, solution, 0, 5.0, 5, cache)
    assert result.is_optimal
    assert result.x[3] == pytest.approx(10 / 3, abs=1e-4)
    assert result.x[1] == pytest.approx(5 + 10 / 3, abs=1e-4)
