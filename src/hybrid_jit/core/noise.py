# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Noise models for measurement factors.

A noise model turns a raw residual ``r`` into a whitened residual ``R r``
where ``R`` is a square-root information matrix (``Rᵀ R = Λ``). Factors use
it in two places:

    • error:       0.5 * ||R r||²       (Gaussian models)
    • linearize:   A ← R J,  b ← -R r  (whitened Jacobian system)

Gaussian family
---------------
Gaussian     full square-root information matrix
Diagonal     independent components, one sigma per row
Isotropic    one sigma shared by all rows
Unit         identity information

All of these report ``is_gaussian = True`` and expose ``information()``.
The mixture factor reads that flag to decide whether a normalizing constant
can be taken straight from the model.

Robust models
-------------
``Robust`` wraps a Gaussian model with an m-estimator (``Huber``,
``Cauchy``). It is not Gaussian: it reports ``is_gaussian = False`` and has
no information matrix, so anything needing one has to linearize first.
"""

from __future__ import annotations
from typing import Tuple

import jax.numpy as jnp
import numpy as np


class Gaussian:
    """Gaussian noise model with a full square-root information matrix."""

    is_gaussian = True

    def __init__(self, sqrt_information: jnp.ndarray) -> None:
        R = jnp.atleast_2d(jnp.asarray(sqrt_information, dtype=float))
        if R.ndim != 2 or R.shape[0] != R.shape[1]:
            raise ValueError(f"sqrt_information must be square, got shape {R.shape}")
        self.R = R

    @property
    def dim(self) -> int:
        return int(self.R.shape[0])

    # --- Constructors ---

    @staticmethod
    def from_sqrt_information(R: jnp.ndarray) -> "Gaussian":
        return Gaussian(R)

    @staticmethod
    def from_information(information: jnp.ndarray) -> "Gaussian":
        """
        Build from an information matrix Λ.

        Uses an eigen-decomposition rather than Cholesky so that positive
        semi-definite (singular) matrices are still representable.
        """
        info = jnp.atleast_2d(jnp.asarray(information, dtype=float))
        evals, evecs = jnp.linalg.eigh(info)
        if bool(jnp.any(evals < -1e-6 * jnp.maximum(1.0, jnp.max(jnp.abs(evals))))):
            raise ValueError("information matrix is not positive semi-definite")
        R = jnp.diag(jnp.sqrt(jnp.clip(evals, 0.0))) @ evecs.T
        return Gaussian(R)

    @staticmethod
    def from_covariance(covariance: jnp.ndarray) -> "Gaussian":
        cov = jnp.atleast_2d(jnp.asarray(covariance, dtype=float))
        return Gaussian.from_information(jnp.linalg.inv(cov))

    # --- Whitening ---

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self.R @ v

    def whiten_system(self, A: jnp.ndarray, b: jnp.ndarray) -> Tuple[jnp.ndarray, jnp.ndarray]:
        return self.R @ A, self.R @ b

    def squared_mahalanobis(self, r: jnp.ndarray) -> jnp.ndarray:
        w = self.whiten(r)
        return jnp.dot(w, w)

    def loss(self, r: jnp.ndarray) -> jnp.ndarray:
        return 0.5 * self.squared_mahalanobis(r)

    def information(self) -> jnp.ndarray:
        return self.R.T @ self.R

    def covariance(self) -> jnp.ndarray:
        return jnp.linalg.inv(self.information())

    # --- Testable ---

    def equals(self, other, tol: float = 1e-9) -> bool:
        if not getattr(other, "is_gaussian", False):
            return False
        if other.R.shape != self.R.shape:
            return False
        return bool(jnp.allclose(self.R, other.R, atol=tol, rtol=0.0))

    def __str__(self) -> str:
        return f"{type(self).__name__}(dim={self.dim}) R=\n{np.asarray(self.R)}"


class Diagonal(Gaussian):
    """Independent components with per-row standard deviations."""

    def __init__(self, sigmas: jnp.ndarray) -> None:
        sigmas = jnp.atleast_1d(jnp.asarray(sigmas, dtype=float))
        self.sigmas = sigmas
        # 1/inf == 0 keeps zero-precision rows representable
        self.inv_sigmas = 1.0 / sigmas
        super().__init__(jnp.diag(self.inv_sigmas))

    @staticmethod
    def from_sigmas(sigmas: jnp.ndarray) -> "Diagonal":
        return Diagonal(sigmas)

    @staticmethod
    def from_variances(variances: jnp.ndarray) -> "Diagonal":
        return Diagonal(jnp.sqrt(jnp.asarray(variances, dtype=float)))

    @staticmethod
    def from_precisions(precisions: jnp.ndarray) -> "Diagonal":
        p = jnp.asarray(precisions, dtype=float)
        return Diagonal(1.0 / jnp.sqrt(p))

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self.inv_sigmas * v

    def whiten_system(self, A: jnp.ndarray, b: jnp.ndarray) -> Tuple[jnp.ndarray, jnp.ndarray]:
        return self.inv_sigmas[:, None] * A, self.inv_sigmas * b

    def information(self) -> jnp.ndarray:
        return jnp.diag(self.inv_sigmas ** 2)

    def __str__(self) -> str:
        return f"{type(self).__name__} sigmas={np.asarray(self.sigmas)}"


class Isotropic(Diagonal):
    """Same standard deviation on every row."""

    @staticmethod
    def sigma(dim: int, sigma: float) -> "Isotropic":
        return Isotropic(jnp.full((dim,), sigma, dtype=float))


class Unit(Isotropic):
    """Identity information."""

    @staticmethod
    def create(dim: int) -> "Unit":
        return Unit(jnp.ones((dim,), dtype=float))


# --- Robust models ---


class Huber:
    """Huber m-estimator: quadratic inside ``k``, linear outside."""

    def __init__(self, k: float = 1.345) -> None:
        if k <= 0:
            raise ValueError("Huber threshold k must be positive")
        self.k = float(k)

    def loss(self, e: jnp.ndarray) -> jnp.ndarray:
        a = jnp.abs(e)
        return jnp.where(a <= self.k, 0.5 * a * a, self.k * a - 0.5 * self.k * self.k)

    def weight(self, e: jnp.ndarray) -> jnp.ndarray:
        a = jnp.abs(e)
        return jnp.where(a <= self.k, 1.0, self.k / jnp.maximum(a, 1e-12))

    def equals(self, other, tol: float = 1e-9) -> bool:
        return type(other) is type(self) and abs(self.k - other.k) <= tol

    def __str__(self) -> str:
        return f"Huber(k={self.k})"


class Cauchy:
    """Cauchy m-estimator."""

    def __init__(self, k: float = 0.1) -> None:
        if k <= 0:
            raise ValueError("Cauchy scale k must be positive")
        self.k = float(k)

    def loss(self, e: jnp.ndarray) -> jnp.ndarray:
        return 0.5 * self.k * self.k * jnp.log1p((e / self.k) ** 2)

    def weight(self, e: jnp.ndarray) -> jnp.ndarray:
        return 1.0 / (1.0 + (e / self.k) ** 2)

    def equals(self, other, tol: float = 1e-9) -> bool:
        return type(other) is type(self) and abs(self.k - other.k) <= tol

    def __str__(self) -> str:
        return f"Cauchy(k={self.k})"


class Robust:
    """
    Gaussian model wrapped with an m-estimator.

    loss(r) = rho(||R r||), and ``whiten_system`` reweights the whitened
    system by sqrt(w(||R r||)) the way one IRLS step would.
    """

    is_gaussian = False

    def __init__(self, m_estimator, noise: Gaussian) -> None:
        self.m_estimator = m_estimator
        self.noise = noise

    @property
    def dim(self) -> int:
        return self.noise.dim

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self.noise.whiten(v)

    def whiten_system(self, A: jnp.ndarray, b: jnp.ndarray) -> Tuple[jnp.ndarray, jnp.ndarray]:
        A_w, b_w = self.noise.whiten_system(A, b)
        sqrt_w = jnp.sqrt(self.m_estimator.weight(jnp.linalg.norm(b_w)))
        return sqrt_w * A_w, sqrt_w * b_w

    def squared_mahalanobis(self, r: jnp.ndarray) -> jnp.ndarray:
        return self.noise.squared_mahalanobis(r)

    def loss(self, r: jnp.ndarray) -> jnp.ndarray:
        return self.m_estimator.loss(jnp.sqrt(self.noise.squared_mahalanobis(r)))

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "is_gaussian", True):
            return False
        return self.m_estimator.equals(other.m_estimator, tol) and self.noise.equals(other.noise, tol)

    def __str__(self) -> str:
        return f"Robust[{self.m_estimator}] {self.noise}"
