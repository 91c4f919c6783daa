# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Hybrid linear mixture: one linear Gaussian factor per discrete assignment.

This is what linearizing a :class:`~hybrid_jit.hybrid.mixture_factor.MixtureFactor`
over all of its modes produces. Every component is a
:class:`~hybrid_jit.core.linear.JacobianFactor` over the same continuous
keys, so an elimination engine can treat the mixture as a single node whose
linear system is picked by the discrete assignment.
"""

from __future__ import annotations
from typing import Callable, Iterator, Optional, Sequence, Tuple

from ..core.linear import JacobianFactor
from ..core.types import DiscreteKey, DiscreteValues, NodeId, Values, format_key
from .decision_tree import DecisionTree
from .hybrid_factor import HybridFactor


class HybridLinearMixture(HybridFactor):
    """Decision tree of JacobianFactors sharing one continuous key layout."""

    kind = "linear_mixture"

    def __init__(
        self,
        keys: Sequence[NodeId],
        discrete_keys: Sequence[DiscreteKey],
        factors: DecisionTree[JacobianFactor],
    ) -> None:
        super().__init__(keys, discrete_keys)
        if factors.keys != self.discrete_keys:
            raise ValueError("Decision tree keys do not match the mixture's discrete keys")
        self.factors = factors

    # --- Selector contract ---

    def select(self, discrete_values: DiscreteValues) -> JacobianFactor:
        return self.factors(self.restrict(discrete_values))

    def __call__(self, discrete_values: DiscreteValues) -> JacobianFactor:
        return self.select(discrete_values)

    def size(self) -> int:
        return self.factors.size()

    def items(self) -> Iterator[Tuple[DiscreteValues, JacobianFactor]]:
        return self.factors.items()

    def for_each(self, visitor: Callable[[DiscreteValues, JacobianFactor], None]) -> None:
        self.factors.for_each(visitor)

    # --- Evaluation ---

    def error(self, delta: Values, discrete_values: DiscreteValues) -> float:
        return self.select(discrete_values).error(delta)

    def error_tree(self, delta: Values) -> DecisionTree[float]:
        return self.factors.apply(lambda f: f.error(delta))

    def linearize(self, values: Values, discrete_values: Optional[DiscreteValues] = None):
        # already linear
        if discrete_values is None:
            return self
        return self.select(discrete_values)

    def dim(self) -> int:
        return self.factors.leaf(0).dim() if self.factors.size() > 0 else 0

    # --- Testable ---

    def equals(self, other, tol: float = 1e-9) -> bool:
        if not self.same_kind(other):
            return False
        if self.keys != other.keys or self.discrete_keys != other.discrete_keys:
            return False
        if self.size() != other.size():
            return False
        return all(
            a.equals(b, tol)
            for a, b in zip(self.factors.leaves(), other.factors.leaves())
        )

    def __str__(self) -> str:
        keys = " ".join(format_key(k) for k in self.keys)
        dkeys = " ".join(str(k) for k in self.discrete_keys)
        lines = [f"HybridLinearMixture ( {keys} ; {dkeys} ) {{"]
        for assignment, factor in self.items():
            lines.append(f"component {assignment}:")
            lines.append(str(factor))
        lines.append("}")
        return "\n".join(lines)
