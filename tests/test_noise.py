from __future__ import annotations

import jax.numpy as jnp
import pytest

from hybrid_jit.core.noise import Cauchy, Diagonal, Gaussian, Huber, Isotropic, Robust, Unit


def test_diagonal_whiten_and_loss():
    """
    sigma = 2 on a 1D residual r = 4:
        whitened = 2, loss = 0.5 * 2^2 = 2
    """
    model = Diagonal.from_sigmas(jnp.array([2.0]))

    assert model.dim == 1
    assert float(model.whiten(jnp.array([4.0]))[0]) == pytest.approx(2.0)
    assert float(model.loss(jnp.array([4.0]))) == pytest.approx(2.0)
    assert float(model.information()[0, 0]) == pytest.approx(0.25)


def test_diagonal_from_variances_and_precisions_agree():
    a = Diagonal.from_variances(jnp.array([4.0, 1.0]))
    b = Diagonal.from_precisions(jnp.array([0.25, 1.0]))
    assert a.equals(b, tol=1e-6)
    assert jnp.allclose(a.information(), jnp.diag(jnp.array([0.25, 1.0])))


def test_zero_precision_gives_zero_information():
    model = Diagonal.from_precisions(jnp.array([0.0]))
    assert float(model.information()[0, 0]) == 0.0


def test_gaussian_from_information_round_trip():
    info = jnp.array([[2.0, 0.5], [0.5, 1.0]])
    model = Gaussian.from_information(info)

    assert model.dim == 2
    assert jnp.allclose(model.information(), info, atol=1e-5)
    assert jnp.allclose(model.covariance(), jnp.linalg.inv(info), atol=1e-4)


def test_gaussian_from_covariance():
    model = Gaussian.from_covariance(jnp.diag(jnp.array([4.0, 1.0])))
    assert jnp.allclose(model.information(), jnp.diag(jnp.array([0.25, 1.0])), atol=1e-5)


def test_gaussian_rejects_indefinite_information():
    with pytest.raises(ValueError):
        Gaussian.from_information(jnp.array([[1.0, 0.0], [0.0, -1.0]]))


def test_unit_and_isotropic():
    unit = Unit.create(3)
    assert jnp.allclose(unit.information(), jnp.eye(3))
    assert unit.is_gaussian

    iso = Isotropic.sigma(2, 0.5)
    assert jnp.allclose(iso.information(), 4.0 * jnp.eye(2))
    assert not iso.equals(unit)


def test_huber_and_cauchy():
    huber = Huber(k=1.0)
    assert float(huber.loss(jnp.array(0.5))) == pytest.approx(0.125)
    assert float(huber.loss(jnp.array(3.0))) == pytest.approx(2.5)
    assert float(huber.weight(jnp.array(0.5))) == pytest.approx(1.0)
    assert float(huber.weight(jnp.array(2.0))) == pytest.approx(0.5)

    cauchy = Cauchy(k=1.0)
    assert float(cauchy.weight(jnp.array(1.0))) == pytest.approx(0.5)

    with pytest.raises(ValueError):
        Huber(k=0.0)


def test_robust_is_not_gaussian():
    robust = Robust(Huber(k=1.0), Unit.create(1))

    assert robust.is_gaussian is False
    assert robust.dim == 1
    assert not hasattr(robust, "information")
    # |r| = 3 > k: linear branch of Huber
    assert float(robust.loss(jnp.array([3.0]))) == pytest.approx(2.5)

    A, b = robust.whiten_system(jnp.array([[1.0]]), jnp.array([-2.0]))
    assert float(A[0, 0]) == pytest.approx(0.5 ** 0.5, abs=1e-6)
    assert float(b[0]) == pytest.approx(-(2.0 ** 0.5), abs=1e-6)


def test_robust_equality():
    a = Robust(Huber(k=1.0), Unit.create(1))
    b = Robust(Huber(k=1.0), Unit.create(1))
    c = Robust(Cauchy(k=1.0), Unit.create(1))

    assert a.equals(b)
    assert not a.equals(c)
    assert not a.equals(Unit.create(1))
    assert not Unit.create(1).equals(a)
