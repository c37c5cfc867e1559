import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


class _AddNoiseBase(base.BaseModule):
    """Additive input corruption, active only in `forward`.

    `calc` passes the input through untouched, and the gradient is the
    identity since the noise does not depend on the input.
    """

    def __init__(self, shape: t.Tuple[int, ...]):
        shape = _utils.as_shape(shape)
        super(_AddNoiseBase, self).__init__(input_shape=shape, output_shape=shape)

    def noise_func(self, noise_shape):
        raise NotImplementedError

    def _calc(self, X):
        return np.copy(X)

    def _forward(self, X):
        return X + self.noise_func(X.shape)

    def _backward(self, X, dout):
        return np.copy(dout)


class AddNoiseGaussian(_AddNoiseBase):
    def __init__(self, shape: t.Tuple[int, ...], mean: float = 0.0, std: float = 1.0):
        super(AddNoiseGaussian, self).__init__(shape)

        self.mean = _utils.as_float(mean, "mean")
        self.std = _utils.as_float(std, "std")

        if self.std < 0.0:
            raise errors.InvalidConfiguration(f"std must be non-negative, got {std}")

    def noise_func(self, noise_shape):
        return np.random.normal(loc=self.mean, scale=self.std, size=noise_shape)


class AddNoiseUniform(_AddNoiseBase):
    def __init__(self, shape: t.Tuple[int, ...], low: float = 0.0, high: float = 1.0):
        super(AddNoiseUniform, self).__init__(shape)

        self.low = _utils.as_float(low, "low")
        self.high = _utils.as_float(high, "high")

        if self.high < self.low:
            raise errors.InvalidConfiguration(
                f"high ({high}) must not be smaller than low ({low})"
            )

    def noise_func(self, noise_shape):
        return np.random.uniform(low=self.low, high=self.high, size=noise_shape)
