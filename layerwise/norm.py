import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


class MovingAverage:
    def __init__(
        self,
        stat_shape: t.Tuple[int, ...],
        momentum: float = 0.9,
        init_const: float = 0.0,
    ):
        assert 0.0 <= float(momentum) <= 1.0

        self.m = float(momentum)
        self.stat = np.full(stat_shape, fill_value=init_const, dtype=float)

    def update(self, new_stats):
        new_stats = np.asarray(new_stats, dtype=float).reshape(self.stat.shape)
        self.stat *= self.m
        self.stat += (1.0 - self.m) * new_stats

    @property
    def shape(self):
        return self.stat.shape


class Normaliser(base.BaseModule):
    """Standardises each input unit with running statistics.

    Every `forward` blends the current input into exponential moving
    averages of X and X^2 (weight `learn_rate` on the new value), then
    outputs `(X - mean) / sd` with `sd = sqrt(var + normaliser_factor)`.
    `calc` standardises with the current statistics without updating them.
    """

    def __init__(
        self,
        shape: t.Tuple[int, ...],
        learn_rate: float = 0.001,
        normaliser_factor: float = 0.001,
    ):
        shape = _utils.as_shape(shape)
        learn_rate = _utils.as_float(learn_rate, "learn_rate")
        normaliser_factor = _utils.as_float(normaliser_factor, "normaliser_factor")

        if not 0.0 < learn_rate <= 1.0:
            raise errors.InvalidConfiguration(
                f"learn_rate must be in (0, 1], got {learn_rate}"
            )

        if normaliser_factor < 0.0:
            raise errors.InvalidConfiguration(
                f"normaliser_factor must be non-negative, got {normaliser_factor}"
            )

        super(Normaliser, self).__init__(input_shape=shape, output_shape=shape)

        self.learn_rate = learn_rate
        self.normaliser_factor = normaliser_factor

        self.acc_mean = MovingAverage(shape, momentum=1.0 - learn_rate, init_const=0.0)
        self.acc_ss = MovingAverage(shape, momentum=1.0 - learn_rate, init_const=1.0)

        self.mean = np.zeros(shape, dtype=float)
        self.sd = np.ones(shape, dtype=float)
        self.tmp = np.zeros(shape, dtype=float)

    def _calc(self, X):
        return (X - self.mean) / self.sd

    def _forward(self, X):
        np.multiply(X, X, out=self.tmp)

        self.acc_mean.update(X)
        self.acc_ss.update(self.tmp)

        self.mean[...] = self.acc_mean.stat

        # Variance from the running moments; rounding can push it below zero.
        np.multiply(self.mean, self.mean, out=self.tmp)
        np.subtract(self.acc_ss.stat, self.tmp, out=self.tmp)
        np.maximum(self.tmp, 0.0, out=self.tmp)
        self.tmp += self.normaliser_factor
        np.sqrt(self.tmp, out=self.sd)

        return self._calc(X)

    def _backward(self, X, dout):
        return dout / self.sd
