import numbers
import typing as t

import numpy as np

from . import errors


def all_gte(vals, threshold):
    a = not isinstance(vals, numbers.Real) or vals >= threshold
    b = not hasattr(vals, "__len__") or all(map(lambda x: x >= threshold, vals))
    return a and b


def all_gt(vals, threshold):
    a = not isinstance(vals, numbers.Real) or vals > threshold
    b = not hasattr(vals, "__len__") or all(map(lambda x: x > threshold, vals))
    return a and b


def all_positive(vals):
    return all_gt(vals, 0)


def is_integral(val) -> bool:
    return isinstance(val, numbers.Integral) and not isinstance(val, bool)


def as_shape(shape, name: str = "shape") -> t.Tuple[int, ...]:
    if is_integral(shape):
        shape = (shape,)

    if not isinstance(shape, (tuple, list)) or not len(shape):
        raise errors.InvalidConfiguration(
            f"{name} must be a non-empty sequence of dimension sizes, got {shape!r}"
        )

    if not all(map(is_integral, shape)) or not all_positive(shape):
        raise errors.InvalidConfiguration(
            f"{name} must contain positive integers only, got {shape!r}"
        )

    return tuple(int(dim) for dim in shape)


def as_float(val, name: str) -> float:
    if isinstance(val, bool) or not isinstance(val, numbers.Real):
        raise errors.InvalidConfiguration(f"{name} must be a real number, got {val!r}")

    return float(val)


def as_callable(fun, name: str):
    if not callable(fun):
        raise errors.InvalidConfiguration(f"{name} must be callable, got {fun!r}")

    return fun


def collapse(items, atom, exceptions):
    if isinstance(items, atom) and not isinstance(items, exceptions):
        return [items]

    cur_items = []

    for item in items:
        cur_items.extend(collapse(item, atom, exceptions))

    return cur_items


def weight_init_param_he(dist: str, dim_in: int, *args):
    assert dist in {"normal", "uniform"}

    if dist == "normal":
        return np.sqrt(2.0 / dim_in)

    return np.sqrt(6.0 / dim_in)


def weight_init_param_xavier(dist: str, dim_in: int, *args):
    assert dist in {"normal", "uniform"}

    if dist == "normal":
        return np.sqrt(1.0 / (3.0 * dim_in))

    return np.sqrt(1.0 / dim_in)


def weight_init_param_xavier_norm(dist: str, dim_in: int, dim_out: int, *args):
    assert dist in {"normal", "uniform"}

    if dist == "normal":
        return np.sqrt(2.0 / (dim_in + dim_out))

    return np.sqrt(6.0 / (dim_in + dim_out))


# NOTE: either 'normal' and 'uniform' distributions are initialized
# to have the very same variance.
_WEIGHT_INIT_PARAM = {
    "he": weight_init_param_he,
    "xavier": weight_init_param_xavier,
    "xavier_norm": weight_init_param_xavier_norm,
}


def get_weight_init_dist_params(
    std: t.Union[str, float],
    dist: str,
    shape: t.Tuple[int, ...],
    dims: t.Optional[t.Tuple[int, int]] = None,
):
    """Scale of the initial weight distribution.

    Weight matrices here are laid out as (dim_out, dim_in), so fan-in is
    read from the last axis when `dims` is not given.
    """
    if not isinstance(std, str):
        if dist != "normal":
            raise errors.InvalidConfiguration(
                "a numeric std is only meaningful for 'normal' initialisation"
            )
        return float(std)

    if dist not in {"normal", "uniform"} or std not in _WEIGHT_INIT_PARAM:
        raise errors.InvalidConfiguration(
            f"unknown weight initialisation ({dist!r}, {std!r})"
        )

    if dims is not None:
        dim_in, dim_out = dims if hasattr(dims, "__len__") else (dims, dims)

    else:
        dim_out, dim_in = shape[0], int(np.prod(shape[1:]))

    param = _WEIGHT_INIT_PARAM[std](dist, dim_in, dim_out)

    if dist == "normal":
        return param

    return -param, param
