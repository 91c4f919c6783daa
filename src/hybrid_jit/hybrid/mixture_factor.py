# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Discrete-continuous mixture factor.

A :class:`MixtureFactor` is a single factor whose continuous error is picked
by the value of one or more discrete "mode" variables. It models
multi-hypothesis measurements: the measurement came from landmark A or B,
the sensor was in nominal or degraded mode, and so on.

Components
----------
The continuous components live in a :class:`DecisionTree` keyed by the
factor's discrete keys. Every component must depend on exactly the
mixture's continuous keys, in the same order, and have the same error
dimension; both are checked at construction.

Normalization
-------------
Components usually come with different noise models. Their raw errors
``0.5 * ||R r||²`` are then not comparable across modes: a broad noise model
always looks cheap. Unless ``normalized=True`` is passed, :meth:`error` adds
the negative log normalizing constant of the selected component,

    -(d * ln 2π) / 2 - ln(det Λ) / 2

where ``Λ`` is the component's information matrix and ``d`` its dimension.
For Gaussian noise models ``Λ`` is read off the model. For anything else
(robust models, factors without a noise model) the component is linearized
at the given values and the Hessian of the linear factor is used instead.

Linearization does not apply the correction: a linearized component is the
raw whitened system. Linearizing without a discrete assignment produces a
:class:`HybridLinearMixture` with one linear factor per assignment.
"""

from __future__ import annotations
import logging
import math
from typing import Mapping, Optional, Sequence, Union

import jax.numpy as jnp

from ..core.errors import SingularInformationError
from ..core.linear import JacobianFactor
from ..core.nonlinear import NonlinearFactor
from ..core.types import DiscreteKey, DiscreteValues, NodeId, Values, format_key
from .decision_tree import DecisionTree
from .hybrid_factor import HybridFactor
from .linear_mixture import HybridLinearMixture

logger = logging.getLogger(__name__)

LOG_2PI = math.log(2.0 * math.pi)


def log_normalizing_constant(factor: NonlinearFactor, values: Values) -> float:
    """
    Negative log normalizing constant of ``factor``'s Gaussian likelihood.

    Raises SingularInformationError when the information matrix does not
    have a positive determinant.
    """
    noise_model = getattr(factor, "noise_model", None)
    if noise_model is not None and getattr(noise_model, "is_gaussian", False):
        info = noise_model.information()
    else:
        logger.debug("No Gaussian noise model on %s, linearizing for information", type(factor).__name__)
        info = factor.linearize(values).information()

    sign, logdet = jnp.linalg.slogdet(jnp.atleast_2d(info))
    sign, logdet = float(sign), float(logdet)
    if not (sign > 0.0 and math.isfinite(logdet)):
        raise SingularInformationError(
            f"Information matrix of {type(factor).__name__} is singular or not positive definite"
        )

    d = factor.dim()
    return -(d * LOG_2PI) / 2.0 - logdet / 2.0


class MixtureFactor(HybridFactor):
    """Continuous factor selected by a discrete assignment."""

    kind = "mixture"

    def __init__(
        self,
        keys: Sequence[NodeId],
        discrete_keys: Sequence[DiscreteKey],
        factors: Union[DecisionTree[NonlinearFactor], Sequence[NonlinearFactor]],
        normalized: bool = False,
    ) -> None:
        """
        :param keys: Continuous keys shared by every component, in order.
        :param discrete_keys: Discrete keys selecting the component.
        :param factors: Either a DecisionTree over ``discrete_keys``, or a
            sequence of components in canonical assignment order (for a
            single key, ``factors[i]`` is the component for value ``i``).
        :param normalized: If True, component errors are already comparable
            likelihoods and no normalizing constant is added.
        """
        super().__init__(keys, discrete_keys)
        if not isinstance(factors, DecisionTree):
            factors = DecisionTree(self.discrete_keys, factors)
        elif factors.keys != self.discrete_keys:
            raise ValueError(
                f"Decision tree keys {[str(k) for k in factors.keys]} do not match "
                f"discrete keys {[str(k) for k in self.discrete_keys]}"
            )
        self.factors: DecisionTree[NonlinearFactor] = factors
        self.normalized = bool(normalized)
        self._check_components()

    @classmethod
    def from_mapping(
        cls,
        keys: Sequence[NodeId],
        discrete_keys: Sequence[DiscreteKey],
        mapping: Mapping,
        normalized: bool = False,
    ) -> "MixtureFactor":
        """Build from explicit ``assignment -> component`` pairs."""
        tree = DecisionTree.from_mapping(discrete_keys, mapping)
        return cls(keys, discrete_keys, tree, normalized)

    def _check_components(self) -> None:
        dims = set()
        for assignment, factor in self.factors.items():
            if tuple(factor.keys) != self.keys:
                raise ValueError(
                    f"Component for {assignment} has keys {tuple(factor.keys)}, "
                    f"expected {self.keys}"
                )
            dims.add(factor.dim())
        if len(dims) > 1:
            raise ValueError(f"Mixture components have different dimensions: {sorted(dims)}")

    # --- Evaluation ---

    def component(self, discrete_values: DiscreteValues) -> NonlinearFactor:
        return self.factors(self.restrict(discrete_values))

    def _component_error(self, factor: NonlinearFactor, values: Values) -> float:
        error = factor.error(values)
        if self.normalized:
            return error
        return error + log_normalizing_constant(factor, values)

    def error(self, values: Values, discrete_values: DiscreteValues) -> float:
        return self._component_error(self.component(discrete_values), values)

    def error_tree(self, values: Values) -> DecisionTree[float]:
        """Error of every component, keyed by assignment."""
        return self.factors.apply(lambda f: self._component_error(f, values))

    def linearize(
        self,
        values: Values,
        discrete_values: Optional[DiscreteValues] = None,
    ) -> Union[JacobianFactor, HybridLinearMixture]:
        """
        Linearize the selected component, or all of them.

        With ``discrete_values`` this returns the selected component's
        JacobianFactor. Without, it returns a HybridLinearMixture holding one
        JacobianFactor per assignment.
        """
        if discrete_values is not None:
            return self.component(discrete_values).linearize(values)

        logger.debug("Linearizing %d mixture components", self.factors.size())
        linear = self.factors.apply(lambda f: f.linearize(values))
        return HybridLinearMixture(self.keys, self.discrete_keys, linear)

    def dim(self) -> int:
        # components share one dimension, checked at construction
        return self.factors.leaf(0).dim() if self.factors.size() > 0 else 0

    # --- Testable ---

    def equals(self, other, tol: float = 1e-9) -> bool:
        """
        Structural equality.

        Components are compared pairwise in traversal order, so two mixtures
        holding the same components under different assignments are not equal.
        """
        if not self.same_kind(other):
            return False
        if self.factors.size() != other.factors.size():
            return False
        for a, b in zip(self.factors.leaves(), other.factors.leaves()):
            if not a.equals(b, tol):
                return False
        return (
            self.keys == tuple(other.keys)
            and self.discrete_keys == tuple(other.discrete_keys)
            and self.normalized == other.normalized
        )

    def __str__(self) -> str:
        keys = " ".join(format_key(k) for k in self.keys)
        dkeys = " ".join(str(k) for k in self.discrete_keys)
        lines = [f"( {keys} ; {dkeys} ) {{"]
        for i, factor in enumerate(self.factors.leaves()):
            lines.append(f"component {i}: {factor}")
        lines.append("}")
        return "\n".join(lines)

    def print(self, s: str = "MixtureFactor") -> None:
        super().print(s)
