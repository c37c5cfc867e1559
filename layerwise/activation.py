import typing as t

import numpy as np
import scipy.special

from . import _utils
from . import base
from . import errors


class _BaseElementwise(base.BaseModule):
    def __init__(self, shape: t.Tuple[int, ...]):
        shape = _utils.as_shape(shape)
        super(_BaseElementwise, self).__init__(input_shape=shape, output_shape=shape)


class ReLU(_BaseElementwise):
    """Rectified linear unit.

    Negative inputs are multiplied by `negval` (0.0 gives the plain ReLU,
    anything else a leaky variant).
    """

    def __init__(self, shape: t.Tuple[int, ...], negval: float = 0.0):
        super(ReLU, self).__init__(shape)
        self.negval = _utils.as_float(negval, "negval")

    def _calc(self, X):
        return np.where(X > 0.0, X, self.negval * X)

    def _backward(self, X, dout):
        dout_b = np.where(X > 0.0, 1.0, self.negval)
        dout_b *= dout
        return dout_b


class Logistic(_BaseElementwise):
    def _calc(self, X):
        inds_pos = X >= 0
        inds_neg = ~inds_pos

        exp_neg = np.exp(X[inds_neg])

        out = np.zeros_like(X, dtype=float)
        out[inds_pos] = 1.0 / (1.0 + np.exp(-X[inds_pos]))
        out[inds_neg] = exp_neg / (1.0 + exp_neg)

        return out

    def _forward(self, X):
        out = self._calc(X)
        self._store_in_cache(out)
        return out

    def _backward(self, X, dout):
        (sig_X,) = self._load_from_cache()
        dout = sig_X * (1.0 - sig_X) * dout
        return dout


class Softmax(_BaseElementwise):
    """Softmax over the whole input, or along `axis` when one is given."""

    def __init__(self, shape: t.Tuple[int, ...], axis: t.Optional[int] = None):
        super(Softmax, self).__init__(shape)

        if axis is not None:
            axis = int(axis)

            if not -len(self.input_shape) <= axis < len(self.input_shape):
                raise errors.InvalidConfiguration(
                    f"axis {axis} is out of range for shape {self.input_shape}"
                )

        self.axis = axis

    def _calc(self, X):
        return scipy.special.softmax(X, axis=self.axis)

    def _forward(self, X):
        out = self._calc(X)
        self._store_in_cache(out)
        return out

    def _backward(self, X, dout):
        (out,) = self._load_from_cache()
        # Jacobian-vector product: diag(y) - y y^T applied to dout.
        dot = np.sum(dout * out, axis=self.axis, keepdims=True)
        return out * (dout - dot)
