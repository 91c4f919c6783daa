# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Convenience builders for the common measurement factors.

These mirror the ``add_factor(f_type=..., var_ids=..., params=...)`` calls
used when assembling a graph by hand, but return a ready
:class:`NoiseModelFactor` that can be used on its own or as a mixture
component.
"""

from __future__ import annotations

import jax.numpy as jnp

from ..core.nonlinear import NoiseModelFactor
from ..core.types import NodeId


def prior_factor(key: NodeId, target, noise_model) -> NoiseModelFactor:
    return NoiseModelFactor(
        "prior",
        (key,),
        {"target": jnp.atleast_1d(jnp.asarray(target, dtype=float))},
        noise_model,
    )


def between_factor(key_i: NodeId, key_j: NodeId, measurement, noise_model) -> NoiseModelFactor:
    return NoiseModelFactor(
        "between",
        (key_i, key_j),
        {"measurement": jnp.atleast_1d(jnp.asarray(measurement, dtype=float))},
        noise_model,
    )


def range_factor(key_i: NodeId, key_j: NodeId, measured_range: float, noise_model) -> NoiseModelFactor:
    return NoiseModelFactor(
        "range",
        (key_i, key_j),
        {"range": jnp.asarray(measured_range, dtype=float)},
        noise_model,
    )
