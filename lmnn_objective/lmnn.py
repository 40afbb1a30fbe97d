"""
Large Margin Nearest Neighbor (LMNN) objective function
"""
import numpy as np
from sklearn.utils import check_random_state
from sklearn.utils.validation import check_X_y

from ._util import (make_name, _check_positive_int, _check_regularization,
                    _check_batch, _check_transformation, _sum_outer_products)
from .cache import EvalCache, TransformationCache, RefreshSchedule
from .constraints import Constraints
from .distance import check_metric

__all__ = ['LMNNFunction']


class LMNNFunction(object):
  """Large Margin Nearest Neighbor (LMNN) objective function

  Cost and gradient of LMNN for a linear transformation ``L``, meant to be
  minimized by an external optimizer. The cost pulls every point towards its
  ``k`` target neighbors (same label) and pushes its ``k`` nearest impostors
  (other labels) out of a unit margin::

    (1 - reg) * sum_ij d(Lx_i, Lx_j)
      + reg * sum_ijl max(0, 1 + d(Lx_i, Lx_j) - d(Lx_i, Lx_l))

  Both the whole dataset and contiguous batches of points can be
  evaluated, so the same function serves batch and stochastic optimizers.

  Evaluations are incremental. Impostors are only searched every
  ``refresh_range`` calls, and the margin violation of every triplet is
  cached together with the transformation it was computed with. On the next
  call, the cached value plus a bound on its drift tells whether the triplet
  can still violate the margin; if it cannot, the triplet is skipped, along
  with the further impostors of the same (point, target) pair.

  Calls are order dependent: a function must not be used from several
  threads, and evaluating the same sequence of transformations on two
  identical functions gives identical results.

  Parameters
  ----------
  X : array-like, shape=(n_samples, n_features)
    Training points. The array is used as is (not copied) when it already
    is a float array, and is never modified; `shuffle` works on its own
    copy.

  y : array-like, shape=(n_samples,)
    Labels of the points.

  k : int, optional (default=1)
    Number of target neighbors, and of impostors, per point.

  regularization : float, optional (default=0.5)
    Weight of the push term, in [0, 1]. The pull term is weighted by
    ``1 - regularization``.

  refresh_range : int, optional (default=1)
    Impostors are searched on the first call and then every
    ``refresh_range`` calls.

  metric : None, str or BaseDistance, optional (default=None)
    Distance between transformed points. Squared Euclidean if None.

  constraints : Constraints or None, optional (default=None)
    Neighbor search to use. A `Constraints` with the same ``k`` and
    ``metric`` is built if None. A given one must search ``k`` neighbors
    with the same kind of metric, and may be shared between functions.

  verbose : bool, optional (default=False)
    Whether to print the cost of every call.

  random_state : int or numpy.RandomState or None, optional (default=None)
    A pseudo random number generator object or a seed for it if int. Used
    by `shuffle`.

  Attributes
  ----------
  target_neighbors_ : `numpy.ndarray` of ints, shape=(n_samples, k)
    Target neighbors of every point, nearest first.

  impostors_ : `numpy.ndarray` of ints, shape=(n_samples, k)
    Impostors of every point found by the last search, nearest first, -1
    for slots that could not be filled.

  impostor_distances_ : `numpy.ndarray`, shape=(n_samples, k)
    Distances to the impostors when they were searched.

  norms_ : `numpy.ndarray`, shape=(n_samples,)
    Euclidean norm of every point.

  pull_ : `numpy.ndarray`, shape=(n_features, n_features)
    Sum of the outer products of the differences between the points and
    their target neighbors.

  index_ : `numpy.ndarray` of ints, shape=(n_samples,)
    Position in the ``X`` given at construction of the point now at each
    position. Changed by `shuffle`.

  n_active_ : int
    Number of triplets violating the margin at the last evaluation.

  Examples
  --------

  >>> import numpy as np
  >>> from scipy.optimize import minimize
  >>> from sklearn.datasets import load_iris
  >>> from lmnn_objective import LMNNFunction
  >>> X, y = load_iris(return_X_y=True)
  >>> lmnn = LMNNFunction(X, y, k=3, refresh_range=5)
  >>> cost, gradient = lmnn.evaluate_with_gradient(lmnn.initial_point())
  >>> res = minimize(lmnn.loss_grad_lbfgs, lmnn.initial_point().ravel(),
  ...                jac=True, method='L-BFGS-B')

  References
  ----------
  .. [1] K. Q. Weinberger, J. Blitzer, L. K. Saul. `Distance Metric
         Learning for Large Margin Nearest Neighbor Classification
         <http://papers.nips.cc/paper/2795-distance-metric\
         -learning-for-large-margin-nearest-neighbor-classification>`_. NIPS
         2005.
  """

  def __init__(self, X, y, k=1, regularization=0.5, refresh_range=1,
               metric=None, constraints=None, verbose=False,
               random_state=None):
    X, y = check_X_y(X, y, dtype=float, ensure_min_samples=2)
    self.k = _check_positive_int(k, 'k')
    self.regularization = _check_regularization(regularization)
    self.refresh_range = _check_positive_int(refresh_range, 'refresh_range')
    self.metric = check_metric(metric)
    self.verbose = verbose
    self.random_state = check_random_state(random_state)
    if constraints is None:
      constraints = Constraints(self.k, metric=self.metric, verbose=verbose)
    elif constraints.k != self.k:
      raise ValueError('The constraints search {} neighbors but k={}.'
                       .format(constraints.k, self.k))
    elif type(constraints.metric) is not type(self.metric):
      raise ValueError('The constraints use {!r} but the metric is {!r}.'
                       .format(constraints.metric, self.metric))
    self.constraints = constraints

    n_samples = X.shape[0]
    self._X = X
    self._y = y
    self._transformed = X
    self.index_ = np.arange(n_samples)
    self.n_active_ = 0
    self._eval_cache = EvalCache(n_samples, self.k)
    self._transformations = TransformationCache(n_samples)
    self._schedule = RefreshSchedule(self.refresh_range)

    self._sync_constraints()
    self.target_neighbors_ = self.constraints.target_neighbors(X, y)
    self.impostors_, self.impostor_distances_ = self.constraints.impostors(
        X, y)
    self.precalculate()

    if self.verbose:
      print('[{}] {} points, {} features, k={}, regularization={}, '
            'refresh_range={}'.format(make_name(self), n_samples, X.shape[1],
                                      self.k, self.regularization,
                                      self.refresh_range))

  @property
  def dataset(self):
    """Read-only view of the points, in their current order."""
    view = self._X.view()
    view.flags.writeable = False
    return view

  @property
  def labels(self):
    """Read-only view of the labels, in their current order."""
    view = self._y.view()
    view.flags.writeable = False
    return view

  @property
  def num_functions(self):
    """Number of separable terms of the cost, one per point."""
    return self._X.shape[0]

  def initial_point(self):
    """Identity transformation, shape=(n_features, n_features)."""
    return np.eye(self._X.shape[1])

  def precalculate(self):
    """Computes the norm of every point and the pull term of the gradient.

    Both only depend on the points and their target neighbors, so they are
    computed at construction and after `shuffle`.
    """
    X, k = self._X, self.k
    self.norms_ = np.linalg.norm(X, axis=1)
    self.pull_ = _sum_outer_products(X, np.repeat(np.arange(X.shape[0]), k),
                                     self.target_neighbors_.ravel())

  def shuffle(self):
    """Randomly reorders the points.

    The cached state of every point moves with it, and target neighbors
    are searched again. The function works on a permuted copy of the
    points from then on.
    """
    n_samples = self._X.shape[0]
    ordering = self.random_state.permutation(n_samples)
    inverse = np.empty_like(ordering)
    inverse[ordering] = np.arange(n_samples)

    old_targets = inverse[self.target_neighbors_[ordering]]
    self._X = self._X[ordering]
    self._y = self._y[ordering]
    self._transformed = self._transformed[ordering]
    self.index_ = self.index_[ordering]
    self._eval_cache.permute(ordering)
    self._transformations.permute(ordering)

    impostors = self.impostors_[ordering]
    self.impostors_ = np.where(impostors >= 0, inverse[impostors], -1)
    self.impostor_distances_ = self.impostor_distances_[ordering]

    self._sync_constraints()
    self.target_neighbors_ = self.constraints.target_neighbors(self._X,
                                                               self._y)
    # ties may swap target slots, their cached triplets are then meaningless
    self._eval_cache.invalidate_targets(old_targets != self.target_neighbors_)
    self.precalculate()

    if self.verbose:
      print('[{}] Shuffled {} points.'.format(make_name(self), n_samples))

  def evaluate(self, transformation, begin=None, batch_size=None):
    """Cost of a transformation.

    Parameters
    ----------
    transformation : array-like, shape=(n_components, n_features)
      Linear transformation ``L``.

    begin : int or None, optional (default=None)
      First point of the batch to evaluate, the whole dataset if None.

    batch_size : int or None, optional (default=None)
      Number of points of the batch, all the points from ``begin`` if None.

    Returns
    -------
    cost : float
    """
    return self._evaluate(transformation, begin, batch_size, False)[0]

  def gradient(self, transformation, begin=None, batch_size=None):
    """Gradient of the cost with respect to the transformation.

    Triplets cached by the last `evaluate` or `evaluate_with_gradient` call
    are trusted without being bounded again, so this should be called with
    the transformation that was last evaluated.

    Parameters
    ----------
    transformation : array-like, shape=(n_components, n_features)
      Linear transformation ``L``.

    begin : int or None, optional (default=None)
      First point of the batch, the whole dataset if None.

    batch_size : int or None, optional (default=None)
      Number of points of the batch, all the points from ``begin`` if None.

    Returns
    -------
    gradient : `numpy.ndarray`, shape=(n_components, n_features)
    """
    L = _check_transformation(transformation, self._X.shape[1])
    batch = _check_batch(begin, batch_size, self._X.shape[0])
    self._transformed = self._X.dot(L.T)

    pull = self._pull(batch, begin is None)
    push = np.zeros_like(pull)
    for i in range(batch.start, batch.stop):
      self._point_push(i, push)
    return self._combine(L, pull, push)

  def evaluate_with_gradient(self, transformation, begin=None,
                             batch_size=None):
    """Cost of a transformation and its gradient, in one pass.

    Parameters
    ----------
    transformation : array-like, shape=(n_components, n_features)
      Linear transformation ``L``.

    begin : int or None, optional (default=None)
      First point of the batch, the whole dataset if None.

    batch_size : int or None, optional (default=None)
      Number of points of the batch, all the points from ``begin`` if None.

    Returns
    -------
    cost : float

    gradient : `numpy.ndarray`, shape=(n_components, n_features)
    """
    return self._evaluate(transformation, begin, batch_size, True)

  def loss_grad_lbfgs(self, flat_transformation):
    """Cost and raveled gradient of a raveled transformation, for
    `scipy.optimize.minimize` with ``jac=True``."""
    L = np.asarray(flat_transformation).reshape(-1, self._X.shape[1])
    cost, gradient = self.evaluate_with_gradient(L)
    return cost, gradient.ravel()

  def _evaluate(self, transformation, begin, batch_size, with_gradient):
    L = _check_transformation(transformation, self._X.shape[1])
    batch = _check_batch(begin, batch_size, self._X.shape[0])
    full = begin is None
    self._transformed = self._X.dot(L.T)

    refreshed = self._schedule.tick()
    if refreshed:
      self._refresh_impostors(batch)

    transformations = self._transformations
    if full:
      drift = transformations.global_drift(L)
    else:
      transformations.allocate_points(L.shape)

    pull = push = None
    if with_gradient:
      pull = self._pull(batch, full)
      push = np.zeros_like(pull)

    cost, n_active = 0., 0
    for i in range(batch.start, batch.stop):
      if not full:
        drift = transformations.point_drift(i, L)
      point_cost, point_active = self._point_cost(i, drift, refreshed, push)
      cost += point_cost
      n_active += point_active
      if not full:
        transformations.store_point(i, L)

    if full:
      transformations.store_global(L)
      transformations.store_points(L)
    else:
      # cached values no longer all date from the last full call
      transformations.forget_global()
    self.n_active_ = n_active

    if self.verbose:
      print('[{}] call {:>6} [{}, {}) cost {:>20.6e} active {:>8}'.format(
          make_name(self), self._schedule.n_calls - 1, batch.start,
          batch.stop, cost, n_active))

    if with_gradient:
      return cost, self._combine(L, pull, push)
    return cost, None

  def _sync_constraints(self):
    # the provider may be shared, its label sets must describe our points
    c = self.constraints
    if not (c.precalculated and len(c.label_inds_) == len(self._y) and
            np.array_equal(c.labels_[c.label_inds_], self._y)):
      c.precalculate(self._y)

  def _refresh_impostors(self, batch):
    old = self.impostors_[batch].copy()
    self._sync_constraints()
    self.constraints.impostors(self._transformed, self._y, batch.start,
                               batch.stop - batch.start,
                               indices=self.impostors_,
                               distances=self.impostor_distances_)
    # a slot holding another impostor has nothing to do with its cache
    changed = np.zeros(self.impostors_.shape, dtype=bool)
    changed[batch] = old != self.impostors_[batch]
    self._eval_cache.invalidate_impostors(changed)

  def _pull(self, batch, full):
    if full:
      return self.pull_.copy()
    inds = np.arange(batch.start, batch.stop)
    return _sum_outer_products(self._X, np.repeat(inds, self.k),
                               self.target_neighbors_[batch].ravel())

  def _combine(self, L, pull, push):
    reg = self.regularization
    return 2 * L.dot((1 - reg) * pull + reg * push)

  def _distances(self, i, inds):
    Lx = self._transformed
    return self.metric.paired(np.repeat(Lx[i:i + 1], len(inds), axis=0),
                              Lx[inds])

  def _point_cost(self, i, drift, refreshed, push=None):
    """Cost of point ``i``, adding its push term to ``push`` if given.

    Returns the cost and the number of triplets violating the margin.
    """
    cache, reg, norms = self._eval_cache, self.regularization, self.norms_
    targets = self.target_neighbors_[i]
    impostors = self.impostors_[i]
    n_slots = np.count_nonzero(impostors >= 0)

    target_dist = self._distances(i, targets)
    cost = (1 - reg) * target_dist.sum()
    impostor_dist = None
    n_active = 0

    for j in reversed(range(self.k)):
      # impostors are sorted, so the first one satisfying the margin ends
      # the scan of this target
      active = n_slots
      for l in range(n_slots):
        value = None
        cached = cache.get(i, j, l)
        if drift is not None and cached is not None:
          max_norm = cache.update_max_impostor_norm(i, l,
                                                    norms[impostors[l]])
          bound = cached + drift * (norms[targets[j]] + max_norm +
                                    2 * norms[i])
          if bound <= -1:
            value = bound
          else:
            cache.reset_max_impostor_norm(i, l)
            cache.invalidate(i, j, l)

        if value is None:
          if refreshed:
            value = target_dist[j] - self.impostor_distances_[i, l]
          else:
            if impostor_dist is None:
              impostor_dist = self._distances(i, impostors[:n_slots])
            value = target_dist[j] - impostor_dist[l]
        cache.store(i, j, l, value)

        if value <= -1:
          active = l
          cache.invalidate_after(i, j, l)
          break
        cost += reg * (1 + value)

      n_active += active
      if push is not None and active:
        self._add_push(push, i, targets[j], impostors[:active])
    return cost, n_active

  def _point_push(self, i, push):
    cache = self._eval_cache
    targets = self.target_neighbors_[i]
    impostors = self.impostors_[i]
    n_slots = np.count_nonzero(impostors >= 0)

    target_dist = None
    impostor_dist = None
    for j in reversed(range(self.k)):
      active = n_slots
      for l in range(n_slots):
        value = cache.get(i, j, l)
        if value is None:
          if target_dist is None:
            target_dist = self._distances(i, targets)
            impostor_dist = self._distances(i, impostors[:n_slots])
          value = target_dist[j] - impostor_dist[l]
        if value < -1:
          active = l
          break
      if active:
        self._add_push(push, i, targets[j], impostors[:active])

  def _add_push(self, push, i, target, impostors):
    X = self._X
    diff = X[i] - X[target]
    diff_imp = X[i] - X[impostors]
    push += len(impostors) * np.outer(diff, diff)
    push -= diff_imp.T.dot(diff_imp)
