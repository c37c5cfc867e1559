import copy
import logging
import typing as t

import numpy as np

from . import _utils
from . import errors


logger = logging.getLogger(__name__)


class Tensor:
    """Learnable array together with its accumulated gradient."""

    def __init__(self, values: t.Optional[np.ndarray] = None):
        if values is None:
            values = np.empty(0, dtype=float)

        self.values = np.array(values, dtype=float)
        self.grads = np.zeros_like(self.values, dtype=float)

    def zero_grad(self):
        self.grads *= 0.0

    def update_grads(self, grads):
        assert grads.shape == self.values.shape, (str(self), grads.shape)
        self.grads += grads

    @property
    def size(self):
        return self.values.size

    @property
    def shape(self):
        return self.values.shape

    @property
    def ndim(self):
        return self.values.ndim

    @staticmethod
    def from_shape(shape, mode: str = "normal", **kwargs):
        if mode not in {"normal", "uniform", "constant", "zeros"}:
            raise errors.InvalidConfiguration(f"unknown initialisation mode {mode!r}")

        shape = _utils.as_shape(shape)

        if mode == "normal":
            mean = kwargs.get("mean", 0.0)
            std = kwargs.get("std", 1.0)
            std = _utils.get_weight_init_dist_params(
                std, mode, shape, kwargs.get("dims")
            )
            return Tensor(np.random.normal(mean, std, shape))

        if mode == "uniform":
            init_type = kwargs.get("std")

            if init_type is not None:
                low, high = _utils.get_weight_init_dist_params(
                    init_type, mode, shape, kwargs.get("dims")
                )

            else:
                high = kwargs.get("high", 1.0)
                low = kwargs.get("low", -high)

            return Tensor(np.random.uniform(low, high, shape))

        constant = kwargs["value"] if mode == "constant" else 0.0
        return Tensor(np.full(shape, fill_value=constant, dtype=float))

    def init_weights(self, mode: str = "normal", **kwargs):
        self.values = Tensor.from_shape(self.shape, mode=mode, **kwargs).values
        return self

    def __repr__(self):
        return f"Tensor of shape {self.values.shape}"


class BaseModule:
    """Common contract of every layer.

    Subclasses implement `_calc`, optionally `_forward` (when the backward
    pass needs more than the input), and `_backward`. The public methods
    validate shapes, keep the last output and input gradient, and return the
    module itself so calls can be chained:

    >>> layer.forward(X).backward(X, dout).input_gradient

    Inputs are reshaped to `input_shape` (when the module knows it) before
    reaching the subclass hooks, and the input gradient is handed back in the
    shape of the input given to `backward`.
    """

    def __init__(
        self,
        input_shape: t.Optional[t.Tuple[int, ...]] = None,
        output_shape: t.Optional[t.Tuple[int, ...]] = None,
        trainable: bool = False,
    ):
        self.input_shape = None
        self.output_shape = None

        if input_shape is not None:
            self.input_shape = _utils.as_shape(input_shape, "input_shape")

        if output_shape is not None:
            self.output_shape = _utils.as_shape(output_shape, "output_shape")

        self.trainable = bool(trainable)
        self.tensors = tuple()
        self.layers = tuple()

        self._output = None
        self._input_gradient = None
        self._cache = None
        self._has_forward = False

    def __iter__(self):
        return iter(self.layers)

    def _calc(self, X):
        raise NotImplementedError

    def _forward(self, X):
        return self._calc(X)

    def _backward(self, X, dout):
        raise NotImplementedError

    def _store_in_cache(self, *args):
        self._cache = args

    def _load_from_cache(self):
        if self._cache is None:
            raise errors.NoOutputAvailable(
                f"{type(self).__name__} has no forward state to backpropagate through"
            )

        return self._cache

    def _prepare_input(self, X):
        if self.input_shape is None:
            return X

        X = np.asarray(X, dtype=float)

        if X.size != int(np.prod(self.input_shape)):
            raise errors.ShapeMismatch(
                f"{type(self).__name__} expects input of shape {self.input_shape}, "
                f"got {X.shape}"
            )

        return X.reshape(self.input_shape)

    def _prepare_output_gradient(self, dout):
        dout = np.asarray(dout, dtype=float)
        out_shape = self.output_shape

        if out_shape is None and isinstance(self._output, np.ndarray):
            out_shape = self._output.shape

        if out_shape is None:
            return dout

        if dout.size != int(np.prod(out_shape)):
            raise errors.ShapeMismatch(
                f"{type(self).__name__} expects output gradient of shape "
                f"{out_shape}, got {dout.shape}"
            )

        return dout.reshape(out_shape)

    def calc(self, X):
        X = self._prepare_input(X)
        self._output = self._calc(X)
        return self

    def forward(self, X):
        X = self._prepare_input(X)
        self._output = self._forward(X)
        self._has_forward = True
        return self

    def backward(self, X, dout):
        if not self._has_forward:
            raise errors.NoOutputAvailable(
                f"{type(self).__name__}.backward requires a preceding forward"
            )

        input_shape = np.shape(X) if self.input_shape is not None else None

        X = self._prepare_input(X)
        dout = self._prepare_output_gradient(dout)
        dX = self._backward(X, dout)

        if input_shape is not None:
            dX = np.reshape(dX, input_shape)

        self._input_gradient = dX

        return self

    def __call__(self, X):
        return self.forward(X).output

    @property
    def output(self):
        if self._output is None:
            raise errors.NoOutputAvailable(
                f"{type(self).__name__} has no output: run calc or forward first"
            )

        return self._output

    @property
    def input_gradient(self):
        if self._input_gradient is None:
            raise errors.NoInputGradientAvailable(
                f"{type(self).__name__} has no input gradient: run backward first"
            )

        return self._input_gradient

    def register_layers(self, *layers):
        self.layers = (*self.layers, *layers)
        nested_tensors = []

        for layer in layers:
            nested_tensors.extend(layer.tensors)

        self.tensors = (*self.tensors, *nested_tensors)

    def parameters(self) -> t.Tuple[np.ndarray, ...]:
        return tuple(tensor.values for tensor in self.tensors)

    def gradient(self) -> t.Tuple[np.ndarray, ...]:
        return tuple(tensor.grads for tensor in self.tensors)

    @property
    def parameter_count(self) -> int:
        return int(sum(tensor.size for tensor in self.tensors))

    def apply_parameters(self, parameters: t.Sequence[np.ndarray]):
        """Replace the parameter values and reset the accumulated gradients."""
        parameters = tuple(np.asarray(values, dtype=float) for values in parameters)

        if len(parameters) != len(self.tensors):
            raise errors.ShapeMismatch(
                f"{type(self).__name__} has {len(self.tensors)} parameter arrays, "
                f"got {len(parameters)}"
            )

        for tensor, values in zip(self.tensors, parameters):
            if values.shape != tensor.shape:
                raise errors.ShapeMismatch(
                    f"parameter of shape {tensor.shape} cannot take values "
                    f"of shape {values.shape}"
                )

        for tensor, values in zip(self.tensors, parameters):
            tensor.values = np.array(values, dtype=float)
            tensor.zero_grad()

        return self

    def zero_grad(self):
        for tensor in self.tensors:
            tensor.zero_grad()

    def clone(self):
        return copy.deepcopy(self)

    def init_weights(self, mode: str = "normal", **kwargs):
        for tensor in self.tensors:
            tensor.init_weights(mode=mode, **kwargs)

        return self

    def __repr__(self):
        strs = [f"{type(self).__name__} component"]

        if self.trainable:
            strs.append(
                f"with {len(self.tensors)} trainable "
                f"tensors (total of {self.parameter_count} parameters)"
            )

        return " ".join(strs)


class Scale(BaseModule):
    def __init__(
        self,
        shape: t.Tuple[int, ...],
        factor: float = 1.0,
        constant: t.Optional[t.Union[float, np.ndarray]] = None,
    ):
        shape = _utils.as_shape(shape)

        super(Scale, self).__init__(input_shape=shape, output_shape=shape)

        factor = _utils.as_float(factor, "factor")

        # Neutral terms are dropped so the transform skips them entirely.
        self.factor = None if factor == 1.0 else factor
        self.constant = None

        if constant is not None:
            constant = np.array(constant, dtype=float)

            try:
                constant = np.broadcast_to(constant, shape).copy()

            except ValueError as err:
                raise errors.ShapeMismatch(
                    f"constant of shape {constant.shape} does not fit shape {shape}"
                ) from err

            if np.any(constant):
                self.constant = constant

    def _calc(self, X):
        out = X if self.factor is None else X * self.factor

        if self.constant is not None:
            out = out + self.constant

        elif out is X:
            out = np.copy(X)

        return out

    def _backward(self, X, dout):
        if self.factor is None:
            return np.copy(dout)

        return self.factor * dout


class Identity(Scale):
    def __init__(self, shape: t.Tuple[int, ...]):
        super(Identity, self).__init__(shape, factor=1.0)


class Linear(BaseModule):
    """Dense affine transform `W X + b`.

    Arguments
    ---------
    weights : array of shape (dim_out, dim_in)
    bias : array of shape (dim_out,)
    """

    def __init__(self, weights: np.ndarray, bias: np.ndarray):
        weights = np.array(weights, dtype=float)
        bias = np.array(bias, dtype=float)

        if weights.ndim != 2 or bias.ndim != 1:
            raise errors.ShapeMismatch(
                f"Linear needs a weight matrix and a bias vector, got shapes "
                f"{weights.shape} and {bias.shape}"
            )

        dim_out, dim_in = weights.shape

        if dim_out != bias.shape[0]:
            raise errors.ShapeMismatch(
                f"Mismatched weight and bias shapes: {weights.shape} and {bias.shape}"
            )

        super(Linear, self).__init__(
            input_shape=(dim_in,), output_shape=(dim_out,), trainable=True
        )

        self.dim_in = int(dim_in)
        self.dim_out = int(dim_out)

        self.weights = Tensor(weights)
        self.bias = Tensor(bias)
        self.tensors = (self.weights, self.bias)

    def _calc(self, X):
        return np.dot(self.weights.values, X) + self.bias.values

    def _backward(self, X, dout):
        self.bias.update_grads(dout)
        self.weights.update_grads(np.outer(dout, X))
        return np.dot(self.weights.values.T, dout)


def linear_layer(
    dim_in: int,
    dim_out: int,
    weight_init_std: t.Union[t.Tuple[str, str], float] = ("normal", "he"),
) -> Linear:
    """Linear layer with random weights and a zero bias."""
    dim_in, dim_out = _utils.as_shape((dim_in, dim_out), "linear dimensions")

    if isinstance(weight_init_std, tuple):
        mode, std = weight_init_std

    else:
        mode, std = "normal", weight_init_std

    weights = Tensor.from_shape(
        (dim_out, dim_in), mode=mode, std=std, dims=(dim_in, dim_out)
    )

    logger.debug(
        "Initialised %dx%d linear weights with %s/%s", dim_out, dim_in, mode, std
    )

    return Linear(weights.values, np.zeros(dim_out, dtype=float))
