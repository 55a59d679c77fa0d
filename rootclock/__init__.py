version="0.1.0"
## Errors derived from RootClockError are due to incorrect calling of rootclock functions or
## input that does not fit the base assumptions (a single root, dates aligned with tips).
## RootClockUnknownError marks failures whose reason is unknown and might indicate a bug.
class RootClockError(Exception):
    """
    RootClockError class
    Parent class for more specific errors
    Raised when rootclock is used incorrectly in contrast with `RootClockUnknownError`
    `RootClockUnknownError` is raised when the reason of the error is unknown, could indicate bug
    """
    pass

class MissingDataError(RootClockError):
    """MissingDataError class raised when sampling dates are missing or cannot be aligned with the tips"""
    pass

class UnknownMethodError(RootClockError):
    """UnknownMethodError class raised when an unknown method is requested"""
    pass

class InsufficientDataError(RootClockError):
    """InsufficientDataError class raised when a regression has too few complete date/distance pairs"""
    pass

class UndefinedRootPathError(RootClockError):
    """UndefinedRootPathError class raised when a node has no unique path to the root of the tree"""
    pass

class AnnotationConsistencyError(RootClockError):
    """AnnotationConsistencyError class raised when a branch annotation cannot be carried over a rerooting"""
    pass

class RootClockUnknownError(Exception):
    """RootClockUnknownError class raised when rootclock fails for an unknown reason. This might be due to data not fulfilling base assumptions or due to bugs in rootclock."""
    pass

## Advisory conditions. These are never raised, they are attached to results
## and passed on to the logger.
class PreconditionWarning(UserWarning):
    """unrooted input tree or suspicious branch length scale"""
    pass

class DegenerateInputWarning(UserWarning):
    """dates without variation, the regression is undefined"""
    pass

class InsufficientDataWarning(DegenerateInputWarning):
    """too few complete date/distance pairs for a regression"""
    pass

class NegativeRateWarning(UserWarning):
    """the regression suggests a negative clock rate"""
    pass

import os, sys
recursion_limit = os.environ.get("ROOTCLOCK_RECURSION_LIMIT")
if recursion_limit:
    sys.setrecursionlimit(int(recursion_limit))
else:
    sys.setrecursionlimit(max(sys.getrecursionlimit(), 10000))

from .dates import leaf_dates, all_dates, node_dates
from .regression import root_to_tip, RegressionResult, prediction_interval
from .rooting import init_root, RootSearch, RootCandidate
from .tree_utils import reroot, prepare_tree, pairwise_node_distances
from .utils import find_dates, make_logger
