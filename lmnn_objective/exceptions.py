"""
The :mod:`lmnn_objective.exceptions` module includes all custom warnings and
error classes used across lmnn-objective.
"""


class NonFiniteEvaluationError(FloatingPointError):

  def __init__(self, value, point, target_slot, impostor_slot):
    err_msg = ("Non-finite margin violation {} for point {} (target slot {}, "
               "impostor slot {}).").format(value, point, target_slot,
                                            impostor_slot)
    super(NonFiniteEvaluationError, self).__init__(err_msg)
