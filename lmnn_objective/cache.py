"""
State LMNNFunction keeps between two calls to skip triplets that cannot
violate the margin.
"""
import numpy as np

from .exceptions import NonFiniteEvaluationError

__all__ = ['EvalCache', 'TransformationCache', 'RefreshSchedule']


class EvalCache(object):
  """Last margin violation of every (point, target, impostor) triplet.

  Each cell holds ``d(x_i, x_j) - d(x_i, x_l)`` under the transformation it
  was computed with, possibly widened by a drift bound, and is tagged valid
  or unset.

  Parameters
  ----------
  n_samples : int
    Number of points.

  k : int
    Number of target neighbors and of impostor slots per point.

  Attributes
  ----------
  values : `numpy.ndarray`, shape=(n_samples, k, k)
    Cached values, indexed ``[point, target_slot, impostor_slot]``.

  valid : `numpy.ndarray` of bools, shape=(n_samples, k, k)
    Whether the matching cell of ``values`` may be used.

  max_impostor_norm : `numpy.ndarray`, shape=(n_samples, k)
    Running maximum of the norm of the impostors seen in each slot since
    the slot was last computed exactly.
  """

  def __init__(self, n_samples, k):
    self.values = np.zeros((n_samples, k, k))
    self.valid = np.zeros((n_samples, k, k), dtype=bool)
    self.max_impostor_norm = np.zeros((n_samples, k))

  def get(self, i, j, l):
    """Cached value of a triplet, None if unset."""
    if self.valid[i, j, l]:
      return self.values[i, j, l]
    return None

  def store(self, i, j, l, value):
    if not np.isfinite(value):
      raise NonFiniteEvaluationError(value, i, j, l)
    self.values[i, j, l] = value
    self.valid[i, j, l] = True

  def invalidate(self, i, j, l):
    self.valid[i, j, l] = False

  def invalidate_after(self, i, j, l):
    """Unsets the impostor slots of target ``j`` of point ``i`` that come
    after slot ``l``."""
    self.valid[i, j, l + 1:] = False

  def invalidate_targets(self, changed):
    """Unsets every triplet of the (point, target slot) pairs flagged in
    ``changed``, shape=(n_samples, k)."""
    points, slots = np.nonzero(changed)
    self.valid[points, slots] = False

  def invalidate_impostors(self, changed):
    """Unsets every triplet of the (point, impostor slot) pairs flagged in
    ``changed``, shape=(n_samples, k)."""
    points, slots = np.nonzero(changed)
    self.valid[points, :, slots] = False
    self.max_impostor_norm[points, slots] = 0.

  def update_max_impostor_norm(self, i, l, norm):
    self.max_impostor_norm[i, l] = max(self.max_impostor_norm[i, l], norm)
    return self.max_impostor_norm[i, l]

  def reset_max_impostor_norm(self, i, l):
    self.max_impostor_norm[i, l] = 0.

  def permute(self, ordering):
    """Moves the state of point ``ordering[i]`` to position ``i``."""
    self.values = self.values[ordering]
    self.valid = self.valid[ordering]
    self.max_impostor_norm = self.max_impostor_norm[ordering]


class TransformationCache(object):
  """Transformations the cached values were computed with.

  The global transformation is the one of the last full-dataset call. Batch
  calls visit points unevenly, so they record one transformation per point;
  that storage is only allocated by the first batch call.

  Parameters
  ----------
  n_samples : int
    Number of points.
  """

  def __init__(self, n_samples):
    self.n_samples = n_samples
    self.transformation = None
    self.point_transformations = None
    self.point_set = None

  def global_drift(self, transformation):
    """Frobenius norm of the change since the last full call, None if there
    is nothing to compare with."""
    return _drift(self.transformation, transformation)

  def point_drift(self, i, transformation):
    """Frobenius norm of the change since point ``i`` was last visited, None
    if there is nothing to compare with."""
    if self.point_transformations is None or not self.point_set[i]:
      return None
    return _drift(self.point_transformations[i], transformation)

  def store_global(self, transformation):
    self.transformation = np.array(transformation, copy=True)

  def forget_global(self):
    self.transformation = None

  def allocate_points(self, shape):
    if (self.point_transformations is None or
            self.point_transformations.shape[1:] != shape):
      self.point_transformations = np.zeros((self.n_samples,) + shape)
      self.point_set = np.zeros(self.n_samples, dtype=bool)

  def store_point(self, i, transformation):
    self.point_transformations[i] = transformation
    self.point_set[i] = True

  def store_points(self, transformation):
    # per-point storage only exists once batch calls were made
    if (self.point_transformations is not None and
            self.point_transformations.shape[1:] == transformation.shape):
      self.point_transformations[:] = transformation
      self.point_set[:] = True

  def permute(self, ordering):
    if self.point_transformations is not None:
      self.point_transformations = self.point_transformations[ordering]
      self.point_set = self.point_set[ordering]


def _drift(old, new):
  if old is None or old.shape != new.shape:
    return None
  return np.linalg.norm(new - old)


class RefreshSchedule(object):
  """Schedules impostor searches every ``period`` objective calls.

  The search happens on calls ``0, period, 2 * period, ...`` (calls are
  counted from 0).

  Parameters
  ----------
  period : int
    Number of calls between two searches.

  Attributes
  ----------
  n_calls : int
    Number of registered calls.

  next_refresh : int
    Index of the next call that will search impostors.
  """

  def __init__(self, period):
    self.period = period
    self.n_calls = 0
    self.next_refresh = 0

  def tick(self):
    """Registers one call and tells whether it must search impostors."""
    due = self.n_calls == self.next_refresh
    if due:
      self.next_refresh += self.period
    self.n_calls += 1
    return due
