import numpy as np
import pytest


def numerical_gradient(loss, values, eps=1e-6):
    """Central finite differences of `loss()` w.r.t. `values`, perturbed in place."""
    grad = np.zeros_like(values, dtype=float)

    for idx in np.ndindex(values.shape):
        orig = values[idx]

        values[idx] = orig + eps
        loss_plus = loss()

        values[idx] = orig - eps
        loss_minus = loss()

        values[idx] = orig
        grad[idx] = (loss_plus - loss_minus) / (2.0 * eps)

    return grad


@pytest.fixture(autouse=True)
def seed():
    np.random.seed(32)


@pytest.fixture
def num_grad():
    return numerical_gradient
