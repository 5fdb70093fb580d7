from fvapy.core.configuration import Configuration
from fvapy.core.model import Model
from fvapy.core.problem import LinearProblem, MixedIntegerProblem
from fvapy.core.solution import Solution
