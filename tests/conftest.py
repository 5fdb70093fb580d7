"""Define global fixtures."""

from typing import List

import pytest

from fvapy import Model
from fvapy.util import solver as sutil


def construct_loop_model(lower_bound: float = 0.0) -> Model:
    """Return a model with the internal cycle A -> B -> C -> A.

    Parameters
    ----------
    lower_bound : float, optional
        The lower bound of the internal reactions (default 0).

    """
    bounds = {
        rxn: (lower_bound if rxn.startswith("v") else 0.0, 10.0)
        for rxn in ["EX_A", "v1", "v2", "v3", "DM_C"]
    }
    return Model.from_reactions(
        {
            "EX_A": {"A": 1},
            "v1": {"A": -1, "B": 1},
            "v2": {"B": -1, "C": 1},
            "v3": {"C": -1, "A": 1},
            "DM_C": {"C": -1},
        },
        bounds=bounds,
        objective={"DM_C": 1},
        name="loop model",
    )


@pytest.fixture(scope="session")
def toy_model() -> Model:
    """Provide session-level fixture for a linear pathway of three reactions."""
    return Model.from_reactions(
        {"EX_A": {"A": 1}, "R1": {"A": -1, "B": 1}, "DM_B": {"B": -1}},
        bounds={"EX_A": (0, 10)},
        objective={"DM_B": 1},
        name="toy model",
    )


@pytest.fixture(scope="session")
def two_reaction_model() -> Model:
    """Provide session-level fixture for an uptake feeding a single sink."""
    return Model.from_reactions(
        {"v1": {"A": 1}, "v2": {"A": -1}},
        bounds={"v1": (0, 10), "v2": (0, 10)},
        objective={"v2": 1},
        name="two reactions",
    )


@pytest.fixture(scope="session")
def loop_model() -> Model:
    """Provide session-level fixture for a model with an internal cycle."""
    return construct_loop_model()


@pytest.fixture(scope="session")
def reversible_loop_model() -> Model:
    """Provide session-level fixture for a cycle of reversible reactions."""
    return construct_loop_model(lower_bound=-10.0)


@pytest.fixture(scope="session")
def futile_cycle_model() -> Model:
    """Provide session-level fixture for two reactions forming a futile cycle."""
    return Model.from_reactions(
        {"EX_A": {"A": 1}, "R1": {"A": -1, "B": 1}, "R2": {"B": -1, "A": 1}},
        bounds={"EX_A": (-10, 10), "R1": (-10, 10), "R2": (-10, 10)},
        name="futile cycle",
    )


@pytest.fixture(
    scope="session",
    params=[s for s in ["glpk", "cplex", "gurobi"] if s in sutil.solvers],
)
def all_solvers(request: pytest.FixtureRequest) -> List[str]:
    """Return the available MILP-capable solvers."""
    return request.param


@pytest.fixture(
    scope="session",
    params=[s for s in ["cplex", "gurobi", "hybrid"] if s in sutil.solvers],
)
def qp_solvers(request: pytest.FixtureRequest) -> List[str]:
    """Return the available QP solvers."""
    return request.param


@pytest.fixture(scope="function")
def glpk_config() -> sutil.SolverConfig:
    """Provide a solver configuration for GLPK."""
    if "glpk" not in sutil.solvers:
        pytest.skip("GLPK is not available.")
    return sutil.SolverConfig.build("glpk")
