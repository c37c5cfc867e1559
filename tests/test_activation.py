import warnings

import numpy as np
import pytest

import layerwise
from layerwise import errors


class TestReLU:
    def test_default_negval(self):
        layer = layerwise.ReLU([3])
        X = np.array([-2.0, 0.0, 3.0])

        layer.forward(X).backward(X, np.ones(3))

        np.testing.assert_array_equal(layer.output, [0.0, 0.0, 3.0])
        np.testing.assert_array_equal(layer.input_gradient, [0.0, 0.0, 1.0])

    def test_negval(self):
        layer = layerwise.ReLU([3], negval=0.1)
        X = np.array([-2.0, 0.0, 3.0])

        layer.forward(X).backward(X, np.array([1.0, 2.0, 3.0]))

        np.testing.assert_allclose(layer.output, [-0.2, 0.0, 3.0])
        np.testing.assert_allclose(layer.input_gradient, [0.1, 0.2, 3.0])

    def test_invalid_negval(self):
        with pytest.raises(errors.InvalidConfiguration):
            layerwise.ReLU([3], negval="small")


class TestLogistic:
    def test_values(self):
        layer = layerwise.Logistic([3])
        out = layer.calc(np.array([0.0, 2.0, -2.0])).output

        np.testing.assert_allclose(out, [0.5, 1.0 / (1.0 + np.exp(-2.0)), 1.0 / (1.0 + np.exp(2.0))])

    def test_extreme_inputs_do_not_overflow(self):
        layer = layerwise.Logistic([2])

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            out = layer.calc(np.array([-1000.0, 1000.0])).output

        np.testing.assert_allclose(out, [0.0, 1.0])

    def test_backward(self, num_grad):
        layer = layerwise.Logistic([2, 3])
        X = np.random.randn(2, 3)
        dout = np.random.randn(2, 3)

        layer.forward(X).backward(X, dout)

        out = layer.output
        np.testing.assert_allclose(layer.input_gradient, dout * out * (1.0 - out))

        def loss():
            return float(np.sum(layer.calc(X).output * dout))

        np.testing.assert_allclose(layer.input_gradient, num_grad(loss, X), atol=1e-6)


class TestSoftmax:
    @pytest.mark.parametrize(
        "X",
        [
            np.array([1.0, 2.0, 3.0]),
            np.array([1000.0, 1001.0, 1002.0]),
            np.array([-1000.0, 0.0, 1000.0]),
            np.zeros(3),
        ],
    )
    def test_is_a_distribution(self, X):
        out = layerwise.Softmax([3]).calc(X).output

        assert np.all(out >= 0.0)
        assert np.sum(out) == pytest.approx(1.0)
        assert np.all(np.isfinite(out))

    def test_shift_invariance(self):
        layer = layerwise.Softmax([4])
        X = np.random.randn(4)

        np.testing.assert_allclose(
            layer.calc(X).output.copy(), layer.calc(X + 50.0).output
        )

    def test_backward_is_jacobian_product(self, num_grad):
        layer = layerwise.Softmax([5])
        X = np.random.randn(5)
        dout = np.random.randn(5)

        layer.forward(X).backward(X, dout)

        out = layer.output
        jacobian = np.diag(out) - np.outer(out, out)
        np.testing.assert_allclose(layer.input_gradient, np.dot(jacobian, dout))

        def loss():
            return float(np.sum(layer.calc(X).output * dout))

        np.testing.assert_allclose(layer.input_gradient, num_grad(loss, X), atol=1e-6)

    def test_normalises_the_whole_input(self, num_grad):
        layer = layerwise.Softmax([2, 3])
        X = np.arange(6.0).reshape(2, 3)
        dout = np.random.randn(2, 3)

        out = layer.calc(X).output

        assert np.sum(out) == pytest.approx(1.0)
        np.testing.assert_allclose(out.ravel(), layerwise.Softmax([6]).calc(X.ravel()).output)

        layer.forward(X).backward(X, dout)

        def loss():
            return float(np.sum(layer.calc(X).output * dout))

        np.testing.assert_allclose(layer.input_gradient, num_grad(loss, X), atol=1e-6)

    def test_axis(self):
        out = layerwise.Softmax([2, 3], axis=0).calc(np.random.randn(2, 3)).output
        np.testing.assert_allclose(np.sum(out, axis=0), np.ones(3))

    def test_invalid_axis(self):
        with pytest.raises(errors.InvalidConfiguration):
            layerwise.Softmax([2, 3], axis=2)


class TestScale:
    def test_neutral_scale_is_identity(self):
        scale = layerwise.Scale([4], factor=1.0, constant=0)
        identity = layerwise.Identity([4])
        X = np.random.randn(4)
        dout = np.random.randn(4)

        assert scale.factor is None
        assert scale.constant is None

        scale.forward(X).backward(X, dout)
        identity.forward(X).backward(X, dout)

        np.testing.assert_array_equal(scale.output, identity.output)
        np.testing.assert_array_equal(scale.input_gradient, identity.input_gradient)
        np.testing.assert_array_equal(identity.output, X)
        np.testing.assert_array_equal(identity.input_gradient, dout)

    def test_identity_output_is_not_the_input(self):
        X = np.ones(2)
        out = layerwise.Identity([2]).calc(X).output
        out[0] = 5.0
        assert X[0] == 1.0

    def test_factor_and_constant(self):
        layer = layerwise.Scale([3], factor=2.0, constant=[1.0, 0.0, -1.0])
        X = np.array([1.0, 2.0, 3.0])

        layer.forward(X).backward(X, np.ones(3))

        np.testing.assert_allclose(layer.output, [3.0, 4.0, 5.0])
        np.testing.assert_allclose(layer.input_gradient, [2.0, 2.0, 2.0])

    def test_scalar_constant_broadcasts(self):
        layer = layerwise.Scale([2, 2], factor=1.0, constant=0.5)
        np.testing.assert_allclose(layer.calc(np.zeros((2, 2))).output, np.full((2, 2), 0.5))

    def test_constant_shape_mismatch(self):
        with pytest.raises(errors.ShapeMismatch):
            layerwise.Scale([3], factor=2.0, constant=[1.0, 2.0])
