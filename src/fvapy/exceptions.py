"""Module for shared exceptions in the fvapy package."""

from typing import Iterable, Optional

import optlang.interface


class OptimizationError(Exception):
    """Exception for Optimization issues."""

    def __init__(self, message):
        """Inherit parent behaviors."""
        super(OptimizationError, self).__init__(message)


class Infeasible(OptimizationError):
    """Exception for Infeasible issues."""

    pass


class Unbounded(OptimizationError):
    """Exception for Unbounded issues."""

    pass


class FeasibleButNotOptimal(OptimizationError):
    """Exception for Non-Optimal issues."""

    pass


class UndefinedSolution(OptimizationError):
    """Exception for Undefined issues."""

    pass


class InfeasibleOrUnbounded(OptimizationError):
    """The reference problem of an analysis has no optimal solution."""

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        """Remember the solver status that caused the failure."""
        super().__init__(message)
        self.status = status


class SolveFailed(OptimizationError):
    """A single reaction optimization ended in a non-optimal state."""

    def __init__(
        self, message: str, reaction: Optional[str] = None, status: Optional[str] = None
    ) -> None:
        """Remember the reaction and the solver status."""
        super().__init__(message)
        self.reaction = reaction
        self.status = status


class UnknownReaction(KeyError):
    """One or more requested reactions are not part of the model."""

    def __init__(self, reactions: Iterable[str]) -> None:
        """Store the offending reaction identifiers."""
        self.reactions = list(reactions)
        super().__init__(
            "There were reactions in the reaction list which are not part of the "
            "model: " + ", ".join(self.reactions)
        )

    def __str__(self) -> str:
        """Avoid the quoting that `KeyError` applies to its message."""
        return self.args[0]


class IncompatibleOptions(ValueError):
    """The requested combination of analysis options is not supported."""

    pass


class SolverNotFound(Exception):
    """A simple Exception when a solver can not be found."""

    pass


OPTLANG_TO_EXCEPTIONS_DICT = dict(
    (
        (optlang.interface.INFEASIBLE, Infeasible),
        (optlang.interface.UNBOUNDED, Unbounded),
        (optlang.interface.FEASIBLE, FeasibleButNotOptimal),
        (optlang.interface.UNDEFINED, UndefinedSolution),
    )
)
