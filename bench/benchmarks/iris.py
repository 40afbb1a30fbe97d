import numpy as np
from sklearn.datasets import load_iris

import lmnn_objective

PARAMS = {
    'full': dict(k=3, refresh_range=1),
    'full_refresh_10': dict(k=3, refresh_range=10),
    'k_5': dict(k=5, refresh_range=1),
    'manhattan': dict(k=3, refresh_range=1, metric='manhattan'),
}


class IrisDataset(object):
  params = [sorted(PARAMS)]
  param_names = ['config']

  def setup(self, config):
    iris_data = load_iris()
    self.iris_points = iris_data['data']
    self.iris_labels = iris_data['target']
    self.lmnn = lmnn_objective.LMNNFunction(self.iris_points,
                                            self.iris_labels,
                                            random_state=5555,
                                            **PARAMS[config])
    rng = np.random.RandomState(5555)
    self.transformations = [np.eye(4) + 0.01 * rng.randn(4, 4)
                            for _ in range(10)]

  def time_evaluate_with_gradient(self, config):
    for L in self.transformations:
      self.lmnn.evaluate_with_gradient(L)

  def time_batches(self, config):
    for L in self.transformations:
      self.lmnn.shuffle()
      for begin in range(0, 150, 30):
        self.lmnn.evaluate_with_gradient(L, begin, 30)
