"""Test functionalities of Flux Variability Analysis."""

import logging
import os

import numpy as np
import pandas as pd
import pytest
from optlang.interface import INFEASIBLE
from pytest_mock import MockerFixture

from fvapy import Model, Solution
from fvapy.exceptions import (
    IncompatibleOptions,
    InfeasibleOrUnbounded,
    SolveFailed,
    UnknownReaction,
)
from fvapy.flux_analysis import variability
from fvapy.flux_analysis.loopless import LoopPolicy
from fvapy.flux_analysis.variability import flux_variability_analysis


LOOP_POLICIES = [
    LoopPolicy.ORIGINAL,
    LoopPolicy.FAST_SNP,
    LoopPolicy.LOCALIZED_NULLSPACE,
    LoopPolicy.LOCALIZED_EFM,
]


def test_flux_variability(toy_model: Model, all_solvers: str) -> None:
    """Test FVA at the optimum of a linear pathway."""
    result = flux_variability_analysis(toy_model, solver=all_solvers, processes=1)
    assert list(result.minimum.index) == ["EX_A", "R1", "DM_B"]
    assert result.minimum.to_numpy() == pytest.approx([10.0] * 3)
    assert result.maximum.to_numpy() == pytest.approx([10.0] * 3)
    assert result.v_min is None
    assert result.v_max is None


def test_flux_variability_fraction(toy_model: Model) -> None:
    """Test FVA with a relaxed objective."""
    result = flux_variability_analysis(toy_model, opt_percentage=50, processes=1)
    frame = result.to_frame()
    assert list(frame.columns) == ["minimum", "maximum"]
    assert frame["minimum"].to_numpy() == pytest.approx([5.0] * 3)
    assert frame["maximum"].to_numpy() == pytest.approx([10.0] * 3)


def test_flux_variability_reaction_list(toy_model: Model) -> None:
    """Test that only the requested reactions are analyzed, in order."""
    result = flux_variability_analysis(
        toy_model, reaction_list=["DM_B", "EX_A"], processes=1
    )
    assert list(result.maximum.index) == ["DM_B", "EX_A"]


def test_flux_variability_minimization(toy_model: Model) -> None:
    """Test that the objective sense defaults to the one of the model."""
    model = toy_model.copy(osense="min")
    result = flux_variability_analysis(model, processes=1)
    assert result.maximum.to_numpy() == pytest.approx([0.0] * 3)
    result = flux_variability_analysis(model, sense="max", processes=1)
    assert result.minimum.to_numpy() == pytest.approx([10.0] * 3)


def test_flux_variability_without_objective(toy_model: Model) -> None:
    """Test that a model without objective spans its whole flux space."""
    model = toy_model.copy(c=np.zeros(3))
    result = flux_variability_analysis(model, processes=1)
    assert result.minimum.to_numpy() == pytest.approx([0.0] * 3)
    assert result.maximum.to_numpy() == pytest.approx([10.0] * 3)


def test_unknown_reaction(toy_model: Model) -> None:
    """Test that unknown reactions are reported before any solve."""
    with pytest.raises(UnknownReaction) as error:
        flux_variability_analysis(toy_model, reaction_list=["R1", "foo"])
    assert error.value.reactions == ["foo"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"opt_percentage": 0},
        {"opt_percentage": 101},
        {"sense": "maximize"},
        {"loop_policy": "CycleFreeFlux"},
        {"method": "3-norm"},
        {"solver_options": {"threads": 4}},
    ],
)
def test_invalid_arguments(toy_model: Model, kwargs: dict) -> None:
    """Test that invalid arguments are rejected."""
    with pytest.raises(ValueError):
        flux_variability_analysis(toy_model, processes=1, **kwargs)


@pytest.mark.parametrize("method", ["0-norm", "1-norm", "2-norm", "minOrigSol"])
def test_norm_without_loop_removal(loop_model: Model, method: str) -> None:
    """Test that norm minimization requires a loop policy."""
    with pytest.raises(IncompatibleOptions):
        flux_variability_analysis(loop_model, method=method, processes=1)


def test_infeasible_model(toy_model: Model) -> None:
    """Test that a model without optimum is reported."""
    model = toy_model.copy(lb=[11.0, 0.0, 0.0], ub=[20.0, 1000.0, 10.0])
    with pytest.raises(InfeasibleOrUnbounded) as error:
        flux_variability_analysis(model, processes=1)
    assert error.value.status == INFEASIBLE


def test_unbounded_model(toy_model: Model) -> None:
    """Test that an unbounded objective is reported."""
    model = toy_model.copy(ub=np.full(3, np.inf))
    with pytest.raises(InfeasibleOrUnbounded):
        flux_variability_analysis(model, processes=1)


def test_solve_failed(toy_model: Model, mocker: MockerFixture) -> None:
    """Test that a failed reaction optimization is reported."""
    mocker.patch.object(
        variability,
        "_optimize_reaction",
        return_value=Solution(np.nan, INFEASIBLE, np.full(3, np.nan)),
    )
    with pytest.raises(SolveFailed) as error:
        flux_variability_analysis(toy_model, processes=1)
    assert error.value.status == INFEASIBLE
    assert error.value.reaction in toy_model.reactions


def test_boundary_presolve(toy_model: Model, mocker: MockerFixture) -> None:
    """Test that fluxes found at their bounds are not optimized again."""
    spy = mocker.spy(variability, "_optimize_reaction")
    result = flux_variability_analysis(toy_model, processes=1)
    assert spy.call_count < 6
    assert result.maximum["EX_A"] == pytest.approx(10.0)


@pytest.mark.parametrize("policy", [LoopPolicy.NONE, LoopPolicy.FAST_SNP])
def test_boundary_presolve_matches_full_optimization(
    loop_model: Model, mocker: MockerFixture, policy: LoopPolicy
) -> None:
    """Test that presolved fluxes equal the ones of single optimizations."""
    presolved = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy=policy, processes=1
    )
    mocker.patch.object(
        variability, "_boundary_presolve", return_value={"max": {}, "min": {}}
    )
    full = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy=policy, processes=1
    )
    pd.testing.assert_frame_equal(presolved.to_frame(), full.to_frame(), atol=1e-6)


def test_loop_exclusion(loop_model: Model) -> None:
    """Test that the internal cycle carries flux without loop removal."""
    result = flux_variability_analysis(loop_model, opt_percentage=50, processes=1)
    assert result.maximum["v3"] == pytest.approx(5.0)
    assert result.minimum["v3"] == pytest.approx(0.0)
    assert result.minimum["v1"] == pytest.approx(5.0)
    assert result.maximum["v1"] == pytest.approx(10.0)


@pytest.mark.parametrize("policy", [LoopPolicy.NONE] + LOOP_POLICIES)
def test_two_reaction_pathway(two_reaction_model: Model, policy: LoopPolicy) -> None:
    """Test that a single optimum pins both reactions of a pathway."""
    result = flux_variability_analysis(
        two_reaction_model, loop_policy=policy, processes=1
    )
    assert result.minimum.to_numpy() == pytest.approx([10.0, 10.0])
    assert result.maximum.to_numpy() == pytest.approx([10.0, 10.0])


@pytest.mark.parametrize("policy", [LoopPolicy.NONE] + LOOP_POLICIES)
def test_unbounded_reaction(toy_model: Model, policy: LoopPolicy) -> None:
    """Test that fluxes without an upper limit have an infinite maximum."""
    model = toy_model.copy(ub=np.full(3, np.inf), c=np.zeros(3))
    result = flux_variability_analysis(model, loop_policy=policy, processes=1)
    assert np.all(result.maximum == np.inf)
    assert result.minimum.to_numpy() == pytest.approx([0.0] * 3)


@pytest.mark.parametrize("policy", LOOP_POLICIES)
def test_loopless_infinite_bounds(loop_model: Model, policy: LoopPolicy) -> None:
    """Test that loop law constraints keep unbounded pathways unbounded."""
    model = loop_model.copy(ub=np.full(5, np.inf), c=np.zeros(5))
    result = flux_variability_analysis(model, loop_policy=policy, processes=1)
    for rxn in ["EX_A", "v1", "v2", "DM_C"]:
        assert result.maximum[rxn] == np.inf
    assert result.maximum["v3"] == pytest.approx(0.0, abs=1e-6)
    assert result.minimum.to_numpy() == pytest.approx([0.0] * 5, abs=1e-6)


def test_loopless_bounds_beyond_big_m(loop_model: Model) -> None:
    """Test that a finite optimum above the loop law bound is found."""
    model = loop_model.copy(
        lb=[0.0, 0.0, 0.0, 0.0, 0.0],
        ub=[5000.0, np.inf, np.inf, np.inf, np.inf],
    )
    result = flux_variability_analysis(model, loop_policy="fastSNP", processes=1)
    assert result.maximum["DM_C"] == pytest.approx(5000.0)
    assert result.minimum["v1"] == pytest.approx(5000.0)
    assert result.maximum["v3"] == pytest.approx(0.0, abs=1e-6)


def test_efm_fallback(
    loop_model: Model, mocker: MockerFixture, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that missing elementary modes fall back to component localization."""
    mocker.patch("fvapy.flux_analysis.loopless.find_mode_links", return_value=None)
    with caplog.at_level(logging.WARNING):
        efm = flux_variability_analysis(
            loop_model, opt_percentage=50, loop_policy="LLC-EFM", processes=1
        )
    assert "No elementary flux modes were found" in caplog.text
    nullspace = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy="LLC-NS", processes=1
    )
    pd.testing.assert_frame_equal(efm.to_frame(), nullspace.to_frame(), atol=1e-6)


@pytest.mark.parametrize("policy", LOOP_POLICIES)
def test_loopless_flux_variability(
    loop_model: Model, all_solvers: str, policy: LoopPolicy
) -> None:
    """Test that loop removal closes the internal cycle."""
    result = flux_variability_analysis(
        loop_model,
        opt_percentage=50,
        loop_policy=policy,
        solver=all_solvers,
        processes=1,
    )
    assert result.maximum["v3"] == pytest.approx(0.0, abs=1e-6)
    assert result.minimum["v3"] == pytest.approx(0.0, abs=1e-6)
    for rxn in ["EX_A", "v1", "v2", "DM_C"]:
        assert result.minimum[rxn] == pytest.approx(5.0)
        assert result.maximum[rxn] == pytest.approx(10.0)


@pytest.mark.parametrize(
    "policy", [LoopPolicy.FAST_SNP, LoopPolicy.LOCALIZED_NULLSPACE]
)
def test_loopless_reversible(reversible_loop_model: Model, policy: LoopPolicy) -> None:
    """Test that only the looping direction of a reversible reaction is closed."""
    ranges = flux_variability_analysis(
        reversible_loop_model, opt_percentage=50, processes=1
    )
    assert ranges.maximum["v3"] == pytest.approx(5.0)
    assert ranges.minimum["v3"] == pytest.approx(-10.0)
    loopless = flux_variability_analysis(
        reversible_loop_model, opt_percentage=50, loop_policy=policy, processes=1
    )
    assert loopless.maximum["v3"] == pytest.approx(0.0, abs=1e-6)
    assert loopless.minimum["v3"] == pytest.approx(-10.0)
    assert loopless.minimum["v1"] == pytest.approx(0.0, abs=1e-6)


def test_loopless_without_loops(toy_model: Model) -> None:
    """Test that loop removal does not change a network without cycles."""
    result = flux_variability_analysis(
        toy_model, opt_percentage=50, loop_policy="fastSNP", processes=1
    )
    assert result.minimum.to_numpy() == pytest.approx([5.0] * 3)
    assert result.maximum.to_numpy() == pytest.approx([10.0] * 3)


@pytest.mark.parametrize("policy", [LoopPolicy.NONE, LoopPolicy.FAST_SNP])
def test_ranges_shrink_with_optimum(loop_model: Model, policy: LoopPolicy) -> None:
    """Test that a tighter objective constraint narrows every range."""
    wide = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy=policy, processes=1
    )
    narrow = flux_variability_analysis(
        loop_model, opt_percentage=100, loop_policy=policy, processes=1
    )
    assert np.all(narrow.minimum >= wide.minimum - 1e-6)
    assert np.all(narrow.maximum <= wide.maximum + 1e-6)
    for ranges in (wide, narrow):
        assert np.all(ranges.minimum <= ranges.maximum + 1e-6)
        assert np.all(ranges.minimum >= loop_model.lb)
        assert np.all(ranges.maximum <= loop_model.ub)


def test_repeated_analysis(loop_model: Model) -> None:
    """Test that an analysis does not change the model or later results."""
    first = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy="LLC-NS", processes=1
    )
    second = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy="LLC-NS", processes=1
    )
    pd.testing.assert_frame_equal(first.to_frame(), second.to_frame())
    assert np.all(loop_model.ub == 10.0)


@pytest.mark.parametrize("method", ["0-norm", "1-norm"])
def test_representative_fluxes(loop_model: Model, method: str) -> None:
    """Test the flux distributions returned at every extreme flux."""
    result = flux_variability_analysis(
        loop_model, loop_policy="fastSNP", method=method, processes=1
    )
    assert result.v_min.shape == (5, 5)
    assert list(result.v_max.index) == list(loop_model.reactions)
    assert list(result.v_max.columns) == list(loop_model.reactions)
    for rxn in loop_model.reactions:
        assert result.v_max[rxn].to_numpy() == pytest.approx(
            [10.0, 10.0, 10.0, 0.0, 10.0], abs=1e-6
        )


def test_representative_fluxes_fba(toy_model: Model) -> None:
    """Test that the plain vertex is allowed without loop removal."""
    result = flux_variability_analysis(toy_model, method="FBA", processes=1)
    assert result.v_min.shape == (3, 3)
    assert result.v_min["R1"].to_numpy() == pytest.approx([10.0] * 3)


def test_representative_fluxes_two_norm(loop_model: Model, qp_solvers: str) -> None:
    """Test Euclidean representatives."""
    result = flux_variability_analysis(
        loop_model,
        opt_percentage=50,
        loop_policy="fastSNP",
        method="2-norm",
        solver=qp_solvers,
        processes=1,
    )
    assert result.v_min["EX_A"].to_numpy() == pytest.approx(
        [5.0, 5.0, 5.0, 0.0, 5.0], abs=1e-4
    )


def test_verbosity(loop_model: Model, caplog: pytest.LogCaptureFixture) -> None:
    """Test that the analysis phases are logged when asked to."""
    with caplog.at_level(logging.INFO, logger="fvapy"):
        flux_variability_analysis(
            loop_model, loop_policy="LLC-NS", verbosity=2, processes=1
        )
    assert "Finding loops" in caplog.text
    assert "The objective optimum is" in caplog.text
    assert "v3 max" in caplog.text


def test_warm_start(toy_model: Model) -> None:
    """Test that warm starts do not change the result."""
    result = flux_variability_analysis(
        toy_model, opt_percentage=50, solver="glpk", use_warm_start=True, processes=1
    )
    assert result.minimum.to_numpy() == pytest.approx([5.0] * 3)
    assert result.maximum.to_numpy() == pytest.approx([10.0] * 3)


@pytest.mark.skipif("SKIP_MP" in os.environ, reason="unsafe for parallel execution")
@pytest.mark.parametrize("policy", [LoopPolicy.NONE, LoopPolicy.LOCALIZED_NULLSPACE])
def test_parallel_flux_variability(loop_model: Model, policy: LoopPolicy) -> None:
    """Test that parallel FVA yields the same results as serial FVA."""
    serial = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy=policy, processes=1
    )
    parallel = flux_variability_analysis(
        loop_model, opt_percentage=50, loop_policy=policy, processes=2
    )
    pd.testing.assert_frame_equal(serial.to_frame(), parallel.to_frame())
