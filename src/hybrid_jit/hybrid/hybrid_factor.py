# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Hybrid (discrete-continuous) factor interface.

A hybrid factor depends on an ordered tuple of continuous keys and a tuple
of discrete keys. Whatever the variant, an elimination or inference engine
only talks to it through:

    error(values, discrete_values)       -> float
    linearize(values, discrete_values)   -> JacobianFactor
    linearize(values)                    -> HybridLinearMixture
    dim()                                -> int
    equals(other, tol)                   -> bool
    print(s) / str()

Each variant carries a ``kind`` tag. Equality first compares tags through
:meth:`HybridFactor.same_kind`, so a variant never has to inspect another
variant's concrete class.
"""

from __future__ import annotations
from typing import Optional, Sequence, Tuple

from ..core.errors import MissingDiscreteKeyError
from ..core.types import DiscreteKey, DiscreteKeys, DiscreteValues, NodeId, Values


class HybridFactor:
    """Base class for factors over continuous and discrete keys."""

    kind: str = "hybrid"

    def __init__(self, keys: Sequence[NodeId], discrete_keys: Sequence[DiscreteKey]) -> None:
        self.keys: Tuple[NodeId, ...] = tuple(keys)
        self.discrete_keys: DiscreteKeys = tuple(discrete_keys)

    def all_keys(self) -> Tuple[int, ...]:
        """Continuous keys followed by discrete key ids."""
        return self.keys + tuple(k.id for k in self.discrete_keys)

    def same_kind(self, other) -> bool:
        return getattr(other, "kind", None) == self.kind

    def restrict(self, discrete_values: Optional[DiscreteValues]) -> DiscreteValues:
        """
        The part of ``discrete_values`` covering this factor's discrete keys.

        Raises MissingDiscreteKeyError if any of them has no value.
        """
        if discrete_values is None:
            discrete_values = {}
        out: DiscreteValues = {}
        for k in self.discrete_keys:
            if k.id not in discrete_values:
                raise MissingDiscreteKeyError(k.id)
            out[k.id] = discrete_values[k.id]
        return out

    def error(self, values: Values, discrete_values: DiscreteValues) -> float:
        raise NotImplementedError

    def linearize(self, values: Values, discrete_values: Optional[DiscreteValues] = None):
        raise NotImplementedError

    def dim(self) -> int:
        raise NotImplementedError

    def equals(self, other, tol: float = 1e-9) -> bool:
        raise NotImplementedError

    def print(self, s: str = "") -> None:
        print((s + " " if s else "") + str(self))
