import numbers

import numpy as np
from sklearn.utils import check_array


def validate_vector(u, dtype=None):
  # replica of scipy.spatial.distance._validate_vector, for making scipy
  # compatible functions on vectors (such as distances computations)
  u = np.asarray(u, dtype=dtype, order='c').squeeze()
  # Ensure values such as u=1 and u=[1] still return 1-D arrays.
  u = np.atleast_1d(u)
  if u.ndim > 1:
    raise ValueError("Input vector should be 1-D.")
  return u


def make_name(obj):
  """Helper function that returns the name of the class of obj or the given
  string if a string is given
  """
  if isinstance(obj, str):
    return obj
  return obj.__class__.__name__


def _check_positive_int(value, name):
  if (isinstance(value, bool) or not isinstance(value, numbers.Integral) or
          value < 1):
    raise ValueError('`{}` must be a positive integer, got {!r}.'
                     .format(name, value))
  return int(value)


def _check_regularization(regularization):
  if (not isinstance(regularization, numbers.Real) or
          not 0. <= regularization <= 1.):
    raise ValueError('`regularization` must be a float in [0, 1], got {!r}.'
                     .format(regularization))
  return float(regularization)


def _check_batch(begin, batch_size, n_samples):
  """Validates a batch range and returns it as a slice.

  ``begin=None`` means the whole dataset.
  """
  if begin is None:
    if batch_size is not None:
      raise ValueError('`batch_size` was given without `begin`.')
    return slice(0, n_samples)
  if batch_size is None:
    batch_size = n_samples - begin
  if (not isinstance(begin, numbers.Integral) or
          not isinstance(batch_size, numbers.Integral)):
    raise ValueError('`begin` and `batch_size` must be integers, got {!r} '
                     'and {!r}.'.format(begin, batch_size))
  if begin < 0 or batch_size < 1 or begin + batch_size > n_samples:
    raise ValueError('Batch [{}, {}) is out of the bounds of a dataset of {} '
                     'samples.'.format(begin, begin + batch_size, n_samples))
  return slice(int(begin), int(begin + batch_size))


def _check_transformation(transformation, n_features):
  transformation = check_array(transformation, dtype=float,
                               ensure_min_samples=1)
  if transformation.shape[1] != n_features:
    raise ValueError('The transformation has {} columns but the dataset has '
                     '{} features.'.format(transformation.shape[1],
                                           n_features))
  return transformation


def _sum_outer_products(data, a_inds, b_inds, weights=None):
  Xab = data[a_inds] - data[b_inds]
  if weights is not None:
    return np.dot(Xab.T, Xab * weights[:, None])
  return np.dot(Xab.T, Xab)
