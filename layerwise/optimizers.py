import logging
import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


logger = logging.getLogger(__name__)


class _BaseOptim:
    """Turns gradients into new parameter values.

    `compute_parameter_update` advances the optimiser state and stores the
    updated parameters in `self.parameters`; it never writes into the arrays
    it was given. Applying them to a module is the job of `optimise`.
    """

    def __init__(self, learning_rate: float):
        learning_rate = _utils.as_float(learning_rate, "learning_rate")

        if learning_rate <= 0.0:
            raise errors.InvalidConfiguration(
                f"learning_rate must be positive, got {learning_rate}"
            )

        self.learning_rate = learning_rate
        self.bias_correction = False
        self.iterations = 0
        self.parameters = tuple()

    def register_layer(self, params):
        pass

    def _steps(self, grads):
        raise NotImplementedError

    @staticmethod
    def _unpack(vals):
        return vals[0] if len(vals) == 1 else vals

    def _correct_bias(self, it: int, m: float, *steps):
        mom_it = m ** it

        if not self.bias_correction or mom_it < 1e-3:
            return self._unpack(steps)

        unbiased = []

        for step in steps:
            unbiased.append(step / (1.0 - mom_it))

        return self._unpack(unbiased)

    def compute_parameter_update(
        self, gradient: t.Sequence[np.ndarray], parameters: t.Sequence[np.ndarray]
    ):
        grads = tuple(np.asarray(grad, dtype=float) for grad in gradient)
        params = tuple(np.asarray(param, dtype=float) for param in parameters)

        if len(grads) != len(params):
            raise errors.ShapeMismatch(
                f"got {len(grads)} gradients for {len(params)} parameters"
            )

        for grad, param in zip(grads, params):
            if grad.shape != param.shape:
                raise errors.ShapeMismatch(
                    f"gradient of shape {grad.shape} for parameter of "
                    f"shape {param.shape}"
                )

        if self.iterations == 0:
            self.register_layer(params)

        steps = self._steps(grads)

        self.parameters = tuple(param - step for param, step in zip(params, steps))
        self.iterations += 1

        return self


class SGD(_BaseOptim):
    """Vanilla SGD.

    All parameters have the same learning rate.
    """

    def _steps(self, grads):
        return [self.learning_rate * grad for grad in grads]


class Momentum(_BaseOptim):
    """SGD with Momentum.

    Keeps a moving average of the gradients, so directions whose gradient
    keeps flipping sign cancel out while consistent directions build up
    velocity.
    """

    def __init__(
        self,
        learning_rate: float,
        first_momentum: float = 0.9,
        bias_correction: bool = True,
    ):
        first_momentum = _utils.as_float(first_momentum, "first_momentum")

        if not 1.0 > first_momentum > 0.0:
            raise errors.InvalidConfiguration(
                f"first_momentum must be in (0, 1), got {first_momentum}"
            )

        super(Momentum, self).__init__(learning_rate=learning_rate)

        self.first_momentum = first_momentum
        self.bias_correction = bool(bias_correction)
        self.fst_mom_mov_avg = []

    def register_layer(self, params):
        self.fst_mom_mov_avg = [np.zeros_like(param) for param in params]

    def _steps(self, grads):
        if len(grads) != len(self.fst_mom_mov_avg) or any(
            grad.shape != avg.shape for grad, avg in zip(grads, self.fst_mom_mov_avg)
        ):
            raise errors.ShapeMismatch(
                "gradients do not match the parameters this optimiser was built for"
            )

        m = self.first_momentum
        # Bias correction uses the 1-based step number.
        it = self.iterations + 1
        steps = []

        for i, grad in enumerate(grads):
            cur_fst_mma = m * self.fst_mom_mov_avg[i] + (1.0 - m) * grad

            # Note: do NOT store the unbiased version (calculated below), or else
            # everything will fall apart!
            self.fst_mom_mov_avg[i] = cur_fst_mma

            cur_fst_mma = self._correct_bias(it, m, cur_fst_mma)
            steps.append(self.learning_rate * cur_fst_mma)

        return steps


def optimise(optimiser: _BaseOptim, module: base.BaseModule):
    """Compute a parameter update from the module gradient, then apply it.

    Returns the (updated) optimiser and module. Applying the parameters
    resets the module's accumulated gradients.
    """
    gradient = module.gradient()

    if not all(np.all(np.isfinite(grad)) for grad in gradient):
        logger.warning(
            "Non-finite gradients in %s before optimisation step %d",
            type(module).__name__,
            optimiser.iterations + 1,
        )

    optimiser = optimiser.compute_parameter_update(gradient, module.parameters())
    module = module.apply_parameters(optimiser.parameters)

    logger.debug(
        "Optimisation step %d updated %d parameters of %s",
        optimiser.iterations,
        module.parameter_count,
        type(module).__name__,
    )

    return optimiser, module
