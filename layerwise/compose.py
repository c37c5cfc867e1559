import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


def _check_distinct(layers):
    if len({id(layer) for layer in layers}) != len(layers):
        raise errors.InvalidConfiguration(
            "the same module instance cannot appear twice in a network; "
            "use clone() to get an independent copy"
        )


def _check_modules(layers, name: str):
    if not layers:
        raise errors.InvalidConfiguration(f"{name} needs at least one module")

    for layer in layers:
        if not isinstance(layer, base.BaseModule):
            raise errors.InvalidConfiguration(
                f"{name} only composes modules, got {type(layer).__name__}"
            )

    _check_distinct(layers)


class Stack(base.BaseModule):
    """Sequential composition.

    Nested lists of modules are flattened; nested `Stack`s are kept as single
    modules.
    """

    def __init__(self, layers):
        try:
            layers = _utils.collapse(layers, atom=base.BaseModule, exceptions=())

        except TypeError as err:
            raise errors.InvalidConfiguration(
                "Stack expects a (possibly nested) sequence of modules"
            ) from err

        _check_modules(layers, "Stack")

        for layer_prev, layer_next in zip(layers[:-1], layers[1:]):
            shape_out, shape_in = layer_prev.output_shape, layer_next.input_shape

            if (
                shape_out is not None
                and shape_in is not None
                and np.prod(shape_out) != np.prod(shape_in)
            ):
                raise errors.ShapeMismatch(
                    f"{type(layer_prev).__name__} outputs {shape_out} but "
                    f"{type(layer_next).__name__} expects {shape_in}"
                )

        super(Stack, self).__init__(
            input_shape=layers[0].input_shape,
            output_shape=layers[-1].output_shape,
            trainable=any(layer.trainable for layer in layers),
        )

        self.register_layers(*layers)

    def _calc(self, X):
        out = X

        for layer in self.layers:
            out = layer.calc(out).output

        # The last layer keeps its own output array.
        return np.copy(out)

    def _forward(self, X):
        inputs = []
        out = X

        for layer in self.layers:
            inputs.append(out)
            out = layer.forward(out).output

        self._store_in_cache(tuple(inputs))

        return np.copy(out)

    def _backward(self, X, dout):
        (inputs,) = self._load_from_cache()

        for layer, layer_input in zip(reversed(self.layers), reversed(inputs)):
            dout = layer.backward(layer_input, dout).input_gradient

        return np.copy(dout)

    def __getitem__(self, i):
        return self.layers[i]

    def __len__(self):
        return len(self.layers)

    def __repr__(self):
        strs = [f"Stack component with {len(self)} layers:"]

        for i, layer in enumerate(self.layers):
            strs.append(f" | {i}. {str(layer)}")

        return "\n".join(strs)


class Split(base.BaseModule):
    """Fan-out: every branch sees the same input.

    The output is the concatenation of the flattened branch outputs, in
    branch order.
    """

    def __init__(self, layers: t.Sequence[base.BaseModule]):
        layers = tuple(layers)
        _check_modules(layers, "Split")

        input_shapes = {l.input_shape for l in layers if l.input_shape is not None}

        if len(input_shapes) > 1:
            raise errors.ShapeMismatch(
                f"Split branches disagree on the input shape: {sorted(input_shapes)}"
            )

        output_shape = None

        if all(l.output_shape is not None for l in layers):
            output_shape = (int(sum(np.prod(l.output_shape) for l in layers)),)

        super(Split, self).__init__(
            input_shape=input_shapes.pop() if input_shapes else None,
            output_shape=output_shape,
            trainable=any(layer.trainable for layer in layers),
        )

        self.register_layers(*layers)

    def _calc(self, X):
        outs = [np.ravel(layer.calc(X).output) for layer in self.layers]
        return np.concatenate(outs)

    def _forward(self, X):
        outs = [np.asarray(layer.forward(X).output) for layer in self.layers]
        self._store_in_cache(tuple(out.shape for out in outs))
        return np.concatenate([out.ravel() for out in outs])

    def _backward(self, X, dout):
        (out_shapes,) = self._load_from_cache()

        split_inds = np.cumsum([int(np.prod(shape)) for shape in out_shapes[:-1]])
        douts = np.split(dout.ravel(), split_inds)

        dX = None

        for layer, dout_branch, shape in zip(self.layers, douts, out_shapes):
            grad = layer.backward(X, dout_branch.reshape(shape)).input_gradient

            # Fan-out adjoint: branch input gradients add up.
            if dX is None:
                dX = np.array(grad, dtype=float)

            else:
                dX += np.reshape(grad, dX.shape)

        return dX

    def __len__(self):
        return len(self.layers)


class _BaseUserFunction(base.BaseModule):
    def __init__(
        self,
        gradient_fn: t.Optional[t.Callable],
        zero_gradient: bool,
        input_shape: t.Optional[t.Tuple[int, ...]] = None,
        output_shape: t.Optional[t.Tuple[int, ...]] = None,
    ):
        super(_BaseUserFunction, self).__init__(
            input_shape=input_shape, output_shape=output_shape
        )

        self.gradient_fn = None

        if gradient_fn is not None:
            self.gradient_fn = _utils.as_callable(gradient_fn, "gradient_fn")

        self.zero_gradient = bool(zero_gradient)

    def _missing_gradient(self, X):
        if not self.zero_gradient:
            raise errors.GradientNotSupported(
                f"{type(self).__name__} was built without a gradient_fn; pass one, "
                "or zero_gradient=True to backpropagate zeros"
            )

        return np.zeros_like(X)


class Combine(_BaseUserFunction):
    """Fan-in: `output = combine_fn(*inputs)` for a sequence of input arrays.

    The backward pass calls `gradient_fn(inputs, output_gradient)`, which
    must return one gradient per input.
    """

    def __init__(
        self,
        combine_fn: t.Callable[..., np.ndarray],
        gradient_fn: t.Optional[t.Callable] = None,
        zero_gradient: bool = False,
        output_shape: t.Optional[t.Tuple[int, ...]] = None,
    ):
        super(Combine, self).__init__(
            gradient_fn=gradient_fn,
            zero_gradient=zero_gradient,
            output_shape=output_shape,
        )

        self.combine_fn = _utils.as_callable(combine_fn, "combine_fn")

    def _prepare_input(self, X):
        if not hasattr(X, "__len__") or (isinstance(X, np.ndarray) and X.ndim == 0):
            raise errors.ShapeMismatch("Combine expects a sequence of inputs")

        return tuple(np.asarray(inp, dtype=float) for inp in X)

    def _calc(self, X):
        return np.asarray(self.combine_fn(*X), dtype=float)

    def _backward(self, X, dout):
        if self.gradient_fn is None:
            return tuple(self._missing_gradient(inp) for inp in X)

        grads = tuple(
            np.asarray(grad, dtype=float) for grad in self.gradient_fn(X, dout)
        )

        if len(grads) != len(X):
            raise errors.ShapeMismatch(
                f"gradient_fn returned {len(grads)} gradients for {len(X)} inputs"
            )

        return grads


class Function(_BaseUserFunction):
    """Wraps a stateless transform `f`.

    The backward pass calls `gradient_fn(input, output_gradient)`.
    """

    def __init__(
        self,
        f: t.Callable[[np.ndarray], np.ndarray],
        gradient_fn: t.Optional[t.Callable] = None,
        zero_gradient: bool = False,
        input_shape: t.Optional[t.Tuple[int, ...]] = None,
        output_shape: t.Optional[t.Tuple[int, ...]] = None,
    ):
        super(Function, self).__init__(
            gradient_fn=gradient_fn,
            zero_gradient=zero_gradient,
            input_shape=input_shape,
            output_shape=output_shape,
        )

        self.f = _utils.as_callable(f, "f")

    def _prepare_input(self, X):
        return super(Function, self)._prepare_input(np.asarray(X, dtype=float))

    def _calc(self, X):
        return np.asarray(self.f(X), dtype=float)

    def _backward(self, X, dout):
        if self.gradient_fn is None:
            return self._missing_gradient(X)

        return np.asarray(self.gradient_fn(X, dout), dtype=float)
