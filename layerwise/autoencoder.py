import typing as t

import numpy as np

from . import base
from . import errors


def _check_shapes(shape_a, shape_b, what: str):
    # Same rule as Stack: only the element counts have to agree.
    if (
        shape_a is not None
        and shape_b is not None
        and np.prod(shape_a) != np.prod(shape_b)
    ):
        raise errors.ShapeMismatch(f"{what}: {shape_a} != {shape_b}")


class DenoisingAutoencoder(base.BaseModule):
    """Encoder `up` followed by decoder `down`.

    When a `corruption` module is given (e.g. `AddNoiseGaussian` or
    `Dropout`), `forward` encodes a corrupted copy of the input; `calc`
    always encodes the clean input.
    """

    def __init__(
        self,
        up: base.BaseModule,
        down: base.BaseModule,
        corruption: t.Optional[base.BaseModule] = None,
    ):
        if up is down:
            raise errors.InvalidConfiguration(
                "up and down must be distinct module instances"
            )

        _check_shapes(up.output_shape, down.input_shape, "up output vs down input")
        _check_shapes(down.output_shape, up.input_shape, "down output vs up input")

        if corruption is not None:
            _check_shapes(
                corruption.output_shape, up.input_shape, "corruption vs up input"
            )

        super(DenoisingAutoencoder, self).__init__(
            input_shape=up.input_shape, output_shape=down.output_shape, trainable=True
        )

        self.up = up
        self.down = down
        self.corruption = corruption

        if self.corruption is not None:
            self.register_layers(self.corruption)

        self.register_layers(self.up, self.down)

    @property
    def encoded(self):
        return self.up.output

    def _calc(self, X):
        encoded = self.up.calc(X).output
        return np.copy(self.down.calc(encoded).output)

    def _forward(self, X):
        X_corrupted = X

        if self.corruption is not None:
            X_corrupted = self.corruption.forward(X).output

        encoded = self.up.forward(X_corrupted).output
        out = self.down.forward(encoded).output

        self._store_in_cache(X_corrupted, encoded)

        return np.copy(out)

    def _backward(self, X, dout):
        (X_corrupted, encoded) = self._load_from_cache()

        self.down.backward(encoded, dout)
        self.up.backward(X_corrupted, self.down.input_gradient)

        dX = self.up.input_gradient

        if self.corruption is not None:
            dX = self.corruption.backward(X, dX).input_gradient

        return np.copy(dX)
