import numpy as np
import pytest

import layerwise
from layerwise import errors


@pytest.mark.parametrize(
    "layer",
    [
        layerwise.AddNoiseGaussian([5], std=0.3),
        layerwise.AddNoiseUniform([5], low=-0.5, high=0.5),
    ],
)
def test_noise_only_in_forward(layer):
    X = np.random.randn(5)
    dout = np.random.randn(5)

    np.testing.assert_array_equal(layer.calc(X).output, X)

    layer.forward(X).backward(X, dout)

    assert np.any(layer.output != X)
    np.testing.assert_array_equal(layer.input_gradient, dout)


def test_uniform_noise_range():
    layer = layerwise.AddNoiseUniform([1000], low=0.0, high=0.1)
    noise = layer.forward(np.zeros(1000)).output

    assert np.all((noise >= 0.0) & (noise < 0.1))


def test_gaussian_noise_scale():
    layer = layerwise.AddNoiseGaussian([100, 100], mean=1.0, std=2.0)
    noise = layer.forward(np.zeros((100, 100))).output

    assert np.mean(noise) == pytest.approx(1.0, abs=0.1)
    assert np.std(noise) == pytest.approx(2.0, rel=0.05)


def test_invalid_parameters():
    with pytest.raises(errors.InvalidConfiguration):
        layerwise.AddNoiseGaussian([3], std=-1.0)

    with pytest.raises(errors.InvalidConfiguration):
        layerwise.AddNoiseUniform([3], low=1.0, high=0.0)
