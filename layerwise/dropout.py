import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


class Dropout(base.BaseModule):
    """Inverted dropout.

    During `forward` every unit is kept with `probability` and survivors are
    scaled by `1 / probability`, so `calc` (inference) is just the identity.
    """

    def __init__(self, shape: t.Tuple[int, ...], probability: float):
        shape = _utils.as_shape(shape)
        probability = _utils.as_float(probability, "probability")

        if not 0.0 < probability <= 1.0:
            raise errors.InvalidConfiguration(
                f"keep probability must be in (0, 1], got {probability}"
            )

        super(Dropout, self).__init__(input_shape=shape, output_shape=shape)

        self.probability = probability

    def _calc(self, X):
        return np.copy(X)

    def _forward(self, X):
        kept_mask = np.random.random(X.shape) < self.probability
        scaled_mask = kept_mask.astype(float, copy=False) / self.probability
        self._store_in_cache(scaled_mask)
        return X * scaled_mask

    def _backward(self, X, dout):
        (scaled_mask,) = self._load_from_cache()
        return dout * scaled_mask
