from .cache import EvalCache, TransformationCache, RefreshSchedule
from .constraints import Constraints
from .distance import (BaseDistance, SquaredEuclideanDistance,
                       EuclideanDistance, ManhattanDistance, check_metric)
from .lmnn import LMNNFunction

from ._version import __version__

__all__ = ['EvalCache', 'TransformationCache', 'RefreshSchedule',
           'Constraints', 'BaseDistance', 'SquaredEuclideanDistance',
           'EuclideanDistance', 'ManhattanDistance', 'check_metric',
           'LMNNFunction', '__version__']
