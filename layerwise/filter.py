import dataclasses
import logging
import typing as t

import numpy as np

from . import _utils
from . import base
from . import errors


logger = logging.getLogger(__name__)


def calc_out_spatial_dim(input_dim: int, kernel_size: int, padding: int, stride: int):
    return 1 + (input_dim + 2 * padding - kernel_size) // stride


@dataclasses.dataclass(frozen=True)
class ConvConfig:
    """Geometry of a sliding window over a (height, width, channels) input.

    Shared as-is by `Convolutional` and `MaxPooling` layers. The input is
    laid out channels-last, so the flat index of pixel (y, x) on channel c
    is `(y * input_width + x) * num_channels + c`.
    """

    input_width: int
    input_height: int
    num_channels: int
    kernel_width: int
    kernel_height: int
    pad_x: int = 0
    pad_y: int = 0
    stride_x: int = 1
    stride_y: int = 1

    def __post_init__(self):
        for field in dataclasses.fields(self):
            val = getattr(self, field.name)

            if not _utils.is_integral(val):
                raise errors.InvalidConfiguration(
                    f"{field.name} must be an integer, got {val!r}"
                )

            # Normalise numpy integers so the record compares and hashes cleanly.
            object.__setattr__(self, field.name, int(val))

        if not _utils.all_positive(
            (
                self.input_width,
                self.input_height,
                self.num_channels,
                self.kernel_width,
                self.kernel_height,
                self.stride_x,
                self.stride_y,
            )
        ):
            raise errors.InvalidConfiguration(
                "input size, channels, kernel size and strides must be positive"
            )

        if not _utils.all_gte((self.pad_x, self.pad_y), 0):
            raise errors.InvalidConfiguration("padding must be non-negative")

        if (
            self.kernel_width > self.input_width + 2 * self.pad_x
            or self.kernel_height > self.input_height + 2 * self.pad_y
        ):
            raise errors.InvalidConfiguration(
                f"kernel ({self.kernel_height}, {self.kernel_width}) does not fit "
                f"the padded input ({self.input_height + 2 * self.pad_y}, "
                f"{self.input_width + 2 * self.pad_x})"
            )

    @property
    def output_width(self) -> int:
        return calc_out_spatial_dim(
            self.input_width, self.kernel_width, self.pad_x, self.stride_x
        )

    @property
    def output_height(self) -> int:
        return calc_out_spatial_dim(
            self.input_height, self.kernel_height, self.pad_y, self.stride_y
        )

    @property
    def input_shape(self) -> t.Tuple[int, int, int]:
        return (self.input_height, self.input_width, self.num_channels)

    @property
    def window_size(self) -> int:
        return self.kernel_height * self.kernel_width * self.num_channels

    def window_bounds(self, r: int, c: int):
        """Window of output position (r, c) in unpadded input coordinates."""
        h_start = r * self.stride_y - self.pad_y
        w_start = c * self.stride_x - self.pad_x
        return (
            h_start,
            h_start + self.kernel_height,
            w_start,
            w_start + self.kernel_width,
        )


class _BaseMovingFilter(base.BaseModule):
    def __init__(self, config: ConvConfig, channels_out: int, trainable: bool):
        if not isinstance(config, ConvConfig):
            raise errors.InvalidConfiguration(
                f"expected a ConvConfig, got {type(config).__name__}"
            )

        self.config = config

        super(_BaseMovingFilter, self).__init__(
            input_shape=config.input_shape,
            output_shape=(config.output_height, config.output_width, channels_out),
            trainable=trainable,
        )

    def _positions(self):
        for r in range(self.config.output_height):
            for c in range(self.config.output_width):
                yield r, c


class Convolutional(_BaseMovingFilter):
    """2D convolution with zero padding.

    Output has shape (output_height, output_width, num_kernels). Each kernel
    is one row of `weights`, holding a window flattened in (y, x, channel)
    order.
    """

    def __init__(
        self,
        config: ConvConfig,
        num_kernels: int,
        weights: t.Optional[np.ndarray] = None,
        bias: t.Optional[np.ndarray] = None,
        weight_init_std: t.Union[t.Tuple[str, str], float] = ("normal", "he"),
    ):
        (num_kernels,) = _utils.as_shape(num_kernels, "num_kernels")

        super(Convolutional, self).__init__(
            config=config, channels_out=num_kernels, trainable=True
        )

        self.num_kernels = num_kernels

        weight_shape = (num_kernels, config.window_size)
        bias_shape = (num_kernels,)

        if weights is not None:
            self.weights = base.Tensor(weights)

        else:
            if isinstance(weight_init_std, tuple):
                mode, std = weight_init_std

            else:
                mode, std = "normal", weight_init_std

            self.weights = base.Tensor.from_shape(weight_shape, mode=mode, std=std)

            logger.debug(
                "Initialised %d convolution kernels of size %d with %s/%s",
                num_kernels,
                config.window_size,
                mode,
                std,
            )

        self.bias = base.Tensor(
            bias if bias is not None else np.zeros(bias_shape, dtype=float)
        )

        if self.weights.shape != weight_shape or self.bias.shape != bias_shape:
            raise errors.ShapeMismatch(
                f"convolution expects weights {weight_shape} and bias {bias_shape}, "
                f"got {self.weights.shape} and {self.bias.shape}"
            )

        self.tensors = (self.weights, self.bias)

    def _pad(self, X):
        cfg = self.config
        pad_widths = ((cfg.pad_y, cfg.pad_y), (cfg.pad_x, cfg.pad_x), (0, 0))
        return np.pad(X, pad_width=pad_widths, mode="constant")

    def _padded_window(self, r, c):
        cfg = self.config
        h_start = r * cfg.stride_y
        w_start = c * cfg.stride_x
        return (
            slice(h_start, h_start + cfg.kernel_height),
            slice(w_start, w_start + cfg.kernel_width),
        )

    def _calc(self, X):
        X = self._pad(X)
        W = self.weights.values

        out = np.empty(self.output_shape, dtype=float)

        for r, c in self._positions():
            rows, cols = self._padded_window(r, c)
            out[r, c, :] = np.dot(W, X[rows, cols, :].ravel())

        out += self.bias.values

        return out

    def _backward(self, X, dout):
        cfg = self.config

        X = self._pad(X)
        W = self.weights.values

        dX = np.zeros_like(X)
        dW = np.zeros_like(W)
        window_shape = (cfg.kernel_height, cfg.kernel_width, cfg.num_channels)

        for r, c in self._positions():
            rows, cols = self._padded_window(r, c)
            dout_pos = dout[r, c, :]
            dW += np.outer(dout_pos, X[rows, cols, :].ravel())
            # Overlapping windows accumulate.
            dX[rows, cols, :] += np.dot(dout_pos, W).reshape(window_shape)

        self.bias.update_grads(np.sum(dout, axis=(0, 1)))
        self.weights.update_grads(dW)

        return dX[
            cfg.pad_y : cfg.pad_y + cfg.input_height,
            cfg.pad_x : cfg.pad_x + cfg.input_width,
            :,
        ]


class MaxPooling(_BaseMovingFilter):
    """Per-channel max pooling.

    Only positions inside the input compete for the maximum; ties go to the
    first maximum in row-major window order. A window lying entirely in the
    padding outputs 0 and has index -1 in `output_indexes`, which always
    describes the last input given to `calc` or `forward`.
    """

    def __init__(self, config: ConvConfig):
        super(MaxPooling, self).__init__(
            config=config, channels_out=config.num_channels, trainable=False
        )

        self.output_indexes = np.full(self.output_shape, fill_value=-1, dtype=int)

    def _calc(self, X):
        out, self.output_indexes = self._pool(X)
        return out

    def _forward(self, X):
        out, out_inds = self._pool(X)
        self.output_indexes = out_inds
        self._store_in_cache(out_inds)
        return out

    def _pool(self, X):
        cfg = self.config
        channels = np.arange(cfg.num_channels)

        out = np.zeros(self.output_shape, dtype=float)
        out_inds = np.full(self.output_shape, fill_value=-1, dtype=int)
        num_empty = 0

        for r, c in self._positions():
            h_start, h_end, w_start, w_end = cfg.window_bounds(r, c)
            h_start, w_start = max(h_start, 0), max(w_start, 0)
            h_end, w_end = min(h_end, cfg.input_height), min(w_end, cfg.input_width)

            if h_start >= h_end or w_start >= w_end:
                num_empty += 1
                continue

            window = X[h_start:h_end, w_start:w_end, :].reshape(-1, cfg.num_channels)

            # np.argmax returns the first occurrence on ties.
            max_indices = np.argmax(window, axis=0)
            out[r, c, :] = window[max_indices, channels]

            ky, kx = np.divmod(max_indices, w_end - w_start)
            flat_pos = (h_start + ky) * cfg.input_width + (w_start + kx)
            out_inds[r, c, :] = flat_pos * cfg.num_channels + channels

        if num_empty:
            logger.warning(
                "%d pooling windows lie entirely in the padding and output zero",
                num_empty,
            )

        return out, out_inds

    def _backward(self, X, dout):
        (out_inds,) = self._load_from_cache()

        dX = np.zeros(X.size, dtype=float)

        out_inds = out_inds.ravel()
        dout = dout.ravel()
        valid = out_inds >= 0

        # A single input can win several overlapping windows.
        np.add.at(dX, out_inds[valid], dout[valid])

        return dX.reshape(X.shape)
