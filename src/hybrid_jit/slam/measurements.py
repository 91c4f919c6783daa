# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Residual models (measurement functions) for hybrid-jit.

Each function here implements an unwhitened residual

    r(x; params) ∈ ℝᵏ

on the stacked vector ``x`` of the factor's variables, concatenated in
``var_ids`` order. Residuals are plain JAX functions, so Jacobians for
linearization come from ``jax.jacobian`` and nothing here needs to know
about derivatives.

Noise is *not* applied here. A :class:`~hybrid_jit.core.nonlinear.NoiseModelFactor`
owns a noise model and whitens the residual itself, which is what lets a
mixture factor read the information matrix off each component.

Families
--------
    • ``prior_residual``:  r = x - target
    • ``odom_residual``:   r = (x_j - x_i) - measurement   (between factor)
    • ``range_residual``:  r = ||p_j - p_i|| - range       (nonlinear)

Adding a factor type
--------------------
    1. Implement ``my_residual(x, params) -> jnp.ndarray`` here.
    2. Add it to ``RESIDUAL_FNS`` under the type string factors will use.
"""

from __future__ import annotations
from typing import Callable, Dict

import jax.numpy as jnp

ResidualFn = Callable[[jnp.ndarray, Dict[str, jnp.ndarray]], jnp.ndarray]


def prior_residual(x: jnp.ndarray, params: Dict[str, jnp.ndarray]) -> jnp.ndarray:
    """
    Simple prior on a single variable:
        residual = x - target
    Works for any vector dimension.
    """
    target = params["target"]
    return x - target


def odom_residual(x: jnp.ndarray, params: Dict[str, jnp.ndarray]) -> jnp.ndarray:
    """
    Between / odometry residual on two equally sized blocks:

        x = [pose0, pose1]
        residual = (pose1 - pose0) - measurement
    """
    dim = x.shape[0] // 2
    pose0 = x[:dim]
    pose1 = x[dim:]
    meas = params["measurement"]
    return (pose1 - pose0) - meas


def range_residual(x: jnp.ndarray, params: Dict[str, jnp.ndarray]) -> jnp.ndarray:
    """
    Range between two points of equal dimension.

        x = [p_i, p_j]
        residual = ||p_j - p_i|| - range

    Returns shape (1,). A small epsilon keeps the gradient finite when the
    points coincide.
    """
    dim = x.shape[0] // 2
    d = x[dim:] - x[:dim]
    dist = jnp.sqrt(jnp.dot(d, d) + 1e-12)
    return jnp.reshape(dist - params["range"], (1,))


RESIDUAL_FNS: Dict[str, ResidualFn] = {
    "prior": prior_residual,
    "odom": odom_residual,
    "between": odom_residual,
    "range": range_residual,
}


def get_residual(factor_type: str) -> ResidualFn:
    fn = RESIDUAL_FNS.get(factor_type, None)
    if fn is None:
        raise ValueError(f"No residual fn registered for factor type '{factor_type}'")
    return fn
