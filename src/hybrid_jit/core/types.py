# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Core typed data structures for hybrid-jit.

This module defines the lightweight key and value containers shared by the
continuous factors, the linear factors and the hybrid mixture machinery.
They carry only identity and structure; all numerical work happens in JAX
inside the factor classes.

Types
-----
NodeId
    Identifier of a continuous variable (an int).

Values
    Mapping ``NodeId -> jnp.ndarray`` holding the current estimate of each
    continuous variable as a 1-D array. Owned by the caller.

DiscreteKey
    Identifier plus cardinality of a discrete "mode" variable. A value of a
    discrete key is an int in ``[0, cardinality)``.

DiscreteValues
    Mapping ``discrete key id -> int`` holding an assignment of discrete
    variables. Owned by the caller.

Notes
-----
Continuous and discrete ids live in separate namespaces: ``NodeId(0)`` and
``DiscreteKey(0, 2)`` do not refer to the same variable.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import NewType, Dict, Mapping, Tuple

import jax.numpy as jnp

NodeId = NewType("NodeId", int)

Values = Mapping[NodeId, jnp.ndarray]
DiscreteValues = Dict[int, int]


@dataclass(frozen=True)
class DiscreteKey:
    """Discrete variable id together with the number of values it can take."""
    id: int
    cardinality: int

    def __post_init__(self) -> None:
        if self.cardinality < 1:
            raise ValueError(
                f"DiscreteKey {self.id} needs a positive cardinality, got {self.cardinality}"
            )

    def __str__(self) -> str:
        return f"d{self.id}({self.cardinality})"


DiscreteKeys = Tuple[DiscreteKey, ...]


def format_key(key: NodeId) -> str:
    """Default formatter for continuous keys in diagnostic dumps."""
    return f"x{int(key)}"
