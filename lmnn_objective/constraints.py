"""
Helper module for searching the target neighbors and impostors LMNN is
trained on.
"""
import numpy as np
import warnings
from sklearn.neighbors import NearestNeighbors

from ._util import make_name
from .distance import check_metric

__all__ = ['Constraints']


class Constraints(object):
  """
  Class to build LMNN constraints from labeled data.

  Target neighbors of a point are its ``k`` nearest neighbors with the same
  label. Impostors are its ``k`` nearest neighbors with another label. Both
  are returned with one row per point, sorted by increasing distance.

  Parameters
  ----------
  k : int
    Number of target neighbors and of impostors per point.

  metric : None, str or BaseDistance, optional (default=None)
    Distance used to report impostor distances, squared Euclidean if None.
    Neighbors are searched with its ``neighbors_metric``.

  verbose : bool, optional (default=False)
    Whether to print a message at each impostor search.

  Attributes
  ----------
  precalculated : bool
    Whether the per-label index sets are up to date. Set it to False when
    the order of the points changes.
  """

  def __init__(self, k, metric=None, verbose=False):
    self.k = k
    self.metric = check_metric(metric)
    self.verbose = verbose
    self.precalculated = False

  def precalculate(self, y):
    """Stores, for every label, the indices of its points and the indices of
    the points of every other label.

    Parameters
    ----------
    y : array-like, shape=(n_samples,)
      Labels of the points.
    """
    y = np.asanyarray(y)
    self.labels_, label_inds = np.unique(y, return_inverse=True)
    self.label_inds_ = label_inds.ravel()
    self.same_ = [np.flatnonzero(self.label_inds_ == c)
                  for c in range(len(self.labels_))]
    self.diff_ = [np.flatnonzero(self.label_inds_ != c)
                  for c in range(len(self.labels_))]
    self.precalculated = True

  def target_neighbors(self, X, y):
    """
    Finds the target neighbors of every point.

    Parameters
    ----------
    X : `numpy.ndarray`, shape=(n_samples, n_features)
      Untransformed points.

    y : array-like, shape=(n_samples,)
      Labels of the points.

    Returns
    -------
    target_neighbors : `numpy.ndarray` of ints, shape=(n_samples, k)
      Indices of the ``k`` nearest points with the same label, self
      excluded, nearest first.
    """
    if not self.precalculated:
      self.precalculate(y)
    smallest = min(len(inds) for inds in self.same_)
    if self.k > smallest - 1:
      raise ValueError('not enough class labels for specified k'
                       ' (smallest class has %d)' % smallest)

    target_neighbors = np.empty((X.shape[0], self.k), dtype=int)
    neigh = NearestNeighbors(metric=self.metric.neighbors_metric)
    for inds in self.same_:
      neigh.fit(X[inds])
      # without a query, kneighbors leaves every point out of its own list
      nn = neigh.kneighbors(n_neighbors=self.k, return_distance=False)
      target_neighbors[inds] = inds[nn]
    return target_neighbors

  def impostors(self, X, y, begin=0, batch_size=None, indices=None,
                distances=None):
    """
    Finds the impostors of the points in ``[begin, begin + batch_size)``.

    Parameters
    ----------
    X : `numpy.ndarray`, shape=(n_samples, n_features)
      Points in the space to search in, usually transformed.

    y : array-like, shape=(n_samples,)
      Labels of the points.

    begin : int, optional (default=0)
      First point to refresh.

    batch_size : int or None, optional (default=None)
      Number of points to refresh, all the points from ``begin`` if None.

    indices : `numpy.ndarray` of ints or None, shape=(n_samples, k)
      Array refreshed in place. A new one, filled with -1, if None.

    distances : `numpy.ndarray` or None, shape=(n_samples, k)
      Array refreshed in place. A new one, filled with inf, if None.

    Returns
    -------
    indices : `numpy.ndarray` of ints, shape=(n_samples, k)
      Indices of the ``k`` nearest points with another label, nearest
      first. Slots that cannot be filled hold -1.

    distances : `numpy.ndarray`, shape=(n_samples, k)
      Distances to the impostors under ``metric``, inf for unfilled slots.
    """
    if not self.precalculated:
      self.precalculate(y)
    n_samples = X.shape[0]
    if batch_size is None:
      batch_size = n_samples - begin
    if indices is None:
      indices = np.full((n_samples, self.k), -1, dtype=int)
    if distances is None:
      distances = np.full((n_samples, self.k), np.inf)

    batch = np.arange(begin, begin + batch_size)
    neigh = NearestNeighbors(metric=self.metric.neighbors_metric)
    for label, diff in enumerate(self.diff_):
      query = batch[self.label_inds_[batch] == label]
      if len(query) == 0:
        continue
      n_neighbors = min(self.k, len(diff))
      if n_neighbors < self.k:
        warnings.warn("The class {} has {} elements of other classes, which "
                      "is not sufficient to find {} impostors. Will find {} "
                      "impostors instead."
                      .format(self.labels_[label], len(diff), self.k,
                              n_neighbors))
      indices[query] = -1
      distances[query] = np.inf
      if n_neighbors == 0:
        continue
      neigh.fit(X[diff])
      nn = neigh.kneighbors(X[query], n_neighbors=n_neighbors,
                            return_distance=False)
      imp = diff[nn]
      indices[query, :n_neighbors] = imp
      distances[query, :n_neighbors] = self.metric.paired(
          np.repeat(X[query], n_neighbors, axis=0),
          X[imp.ravel()]).reshape(len(query), n_neighbors)

    if self.verbose:
      print('[{}] Found impostors of points [{}, {}).'.format(
          make_name(self), begin, begin + batch_size))
    return indices, distances
