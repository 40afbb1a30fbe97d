"""
Pairwise distance functions used to compare transformed points.
"""
from abc import ABCMeta, abstractmethod

import numpy as np
from scipy.spatial import distance

from ._util import validate_vector

__all__ = ['BaseDistance', 'SquaredEuclideanDistance', 'EuclideanDistance',
           'ManhattanDistance', 'check_metric']


class BaseDistance(metaclass=ABCMeta):
  """Base class for the distances LMNNFunction can be evaluated with.

  A distance is stateless: ``evaluate`` only depends on its two arguments.

  Attributes
  ----------
  neighbors_metric : str
    Name of a metric accepted by `sklearn.neighbors.NearestNeighbors` that
    ranks points in the same order as this distance. It is used to search
    target neighbors and impostors.
  """

  neighbors_metric = 'euclidean'

  @abstractmethod
  def evaluate(self, a, b):
    """Distance between two points.

    Parameters
    ----------
    a : array-like, shape=(n_features,)
    b : array-like, shape=(n_features,)

    Returns
    -------
    distance : float
    """

  def paired(self, A, B):
    """Row-wise distances between two arrays of points.

    Parameters
    ----------
    A : `numpy.ndarray`, shape=(n_points, n_features)
    B : `numpy.ndarray`, shape=(n_points, n_features)

    Returns
    -------
    distances : `numpy.ndarray`, shape=(n_points,)
    """
    A, B = np.atleast_2d(A), np.atleast_2d(B)
    return np.array([self.evaluate(a, b) for a, b in zip(A, B)])

  def __repr__(self):
    return '{}()'.format(self.__class__.__name__)


class SquaredEuclideanDistance(BaseDistance):
  """Squared Euclidean distance, the default LMNN distance."""

  def evaluate(self, a, b):
    return distance.sqeuclidean(validate_vector(a, dtype=float),
                                validate_vector(b, dtype=float))

  def paired(self, A, B):
    diff = np.atleast_2d(A) - np.atleast_2d(B)
    return np.einsum('ij,ij->i', diff, diff)


class EuclideanDistance(BaseDistance):

  def evaluate(self, a, b):
    return distance.euclidean(validate_vector(a, dtype=float),
                              validate_vector(b, dtype=float))

  def paired(self, A, B):
    diff = np.atleast_2d(A) - np.atleast_2d(B)
    return np.sqrt(np.einsum('ij,ij->i', diff, diff))


class ManhattanDistance(BaseDistance):

  neighbors_metric = 'manhattan'

  def evaluate(self, a, b):
    return distance.cityblock(validate_vector(a, dtype=float),
                              validate_vector(b, dtype=float))

  def paired(self, A, B):
    return np.abs(np.atleast_2d(A) - np.atleast_2d(B)).sum(axis=1)


_METRICS = {'sqeuclidean': SquaredEuclideanDistance,
            'euclidean': EuclideanDistance,
            'manhattan': ManhattanDistance}


def check_metric(metric):
  """Turns ``metric`` into a `BaseDistance` instance.

  Parameters
  ----------
  metric : None, str or BaseDistance
    ``None`` gives the squared Euclidean distance. Strings can be
    'sqeuclidean', 'euclidean' or 'manhattan'.

  Returns
  -------
  metric : BaseDistance
  """
  if metric is None:
    return SquaredEuclideanDistance()
  if isinstance(metric, BaseDistance):
    return metric
  if isinstance(metric, str) and metric in _METRICS:
    return _METRICS[metric]()
  raise ValueError("`metric` must be None, one of {} or a BaseDistance "
                   "instance, got {!r}.".format(sorted(_METRICS), metric))
