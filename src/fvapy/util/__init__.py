from fvapy.util.array import nullspace, support_components
from fvapy.util.process_pool import ProcessPool
from fvapy.util.solver import *
from fvapy.util.util import show_versions
