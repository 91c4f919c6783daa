# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Nonlinear continuous factors.

:class:`NonlinearFactor` is the contract every continuous factor satisfies,
and the one a mixture factor relies on for its components:

    error(values)      -> float
    dim()              -> int
    linearize(values)  -> JacobianFactor
    equals(other, tol) -> bool
    print(s) / str()

:class:`NoiseModelFactor` is the workhorse implementation. Like a factor in
a DSG-JIT graph it is described by a ``type`` string, an ordered tuple of
variable ids and a ``params`` dict; the ``type`` selects a residual function
from :data:`hybrid_jit.slam.measurements.RESIDUAL_FNS` unless one is passed
explicitly. The residual is evaluated on the stacked vector of the factor's
variables and Jacobians come from ``jax.jacobian``.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from .linear import JacobianFactor
from .types import NodeId, Values, format_key
from ..slam.measurements import ResidualFn, get_residual


class NonlinearFactor:
    """Base class for continuous factors over an ordered tuple of keys."""

    def __init__(self, keys: Sequence[NodeId]) -> None:
        self.keys: Tuple[NodeId, ...] = tuple(keys)

    def error(self, values: Values) -> float:
        raise NotImplementedError

    def dim(self) -> int:
        raise NotImplementedError

    def linearize(self, values: Values) -> JacobianFactor:
        raise NotImplementedError

    def equals(self, other, tol: float = 1e-9) -> bool:
        raise NotImplementedError

    def print(self, s: str = "") -> None:
        print(f"{s}{self}")


class NoiseModelFactor(NonlinearFactor):
    """
    Residual-function factor whitened by a noise model.

    error(x) = noise_model.loss(r(x)), which is 0.5 * ||R r(x)||² for
    Gaussian models.
    """

    def __init__(
        self,
        factor_type: str,
        var_ids: Sequence[NodeId],
        params: Dict[str, Any],
        noise_model,
        residual_fn: Optional[ResidualFn] = None,
    ) -> None:
        super().__init__(var_ids)
        self.type = factor_type
        self.params = dict(params)
        self.noise_model = noise_model
        self.residual_fn = residual_fn if residual_fn is not None else get_residual(factor_type)

    def _stack(self, values: Values) -> Tuple[jnp.ndarray, List[int]]:
        blocks = []
        for nid in self.keys:
            if nid not in values:
                raise KeyError(f"No value for continuous key {format_key(nid)}")
            blocks.append(jnp.atleast_1d(jnp.asarray(values[nid], dtype=float)))
        return jnp.concatenate(blocks), [v.shape[0] for v in blocks]

    def unwhitened_error(self, values: Values) -> jnp.ndarray:
        x, _ = self._stack(values)
        return self.residual_fn(x, self.params)

    def error(self, values: Values) -> float:
        return float(self.noise_model.loss(self.unwhitened_error(values)))

    def dim(self) -> int:
        return self.noise_model.dim

    def linearize(self, values: Values) -> JacobianFactor:
        """
        First-order expansion at ``values``:

            r(x + δ) ≈ r(x) + J δ

        whitened into ``A = R J`` and ``b = -R r(x)``.
        """
        x, widths = self._stack(values)
        params = self.params
        residual_fn = self.residual_fn

        def r_of_x(x_: jnp.ndarray) -> jnp.ndarray:
            return residual_fn(x_, params)

        r = r_of_x(x)
        J = jax.jacobian(r_of_x)(x)   # (m, n)
        A, b = self.noise_model.whiten_system(J, -r)

        blocks, start = [], 0
        for w in widths:
            blocks.append(A[:, start:start + w])
            start += w
        return JacobianFactor(self.keys, blocks, b)

    # --- Testable ---

    def equals(self, other, tol: float = 1e-9) -> bool:
        if not isinstance(other, NoiseModelFactor):
            return False
        if self.type != other.type or self.keys != other.keys:
            return False
        if self.residual_fn is not other.residual_fn:
            return False
        if set(self.params) != set(other.params):
            return False
        for name, value in self.params.items():
            a = jnp.asarray(value)
            b = jnp.asarray(other.params[name])
            if a.shape != b.shape or not jnp.allclose(a, b, atol=tol, rtol=0.0):
                return False
        return self.noise_model.equals(other.noise_model, tol)

    def __str__(self) -> str:
        keys = " ".join(format_key(k) for k in self.keys)
        params = ", ".join(f"{k}={np.asarray(v).tolist()}" for k, v in self.params.items())
        return f"NoiseModelFactor[{self.type}]({keys}) {{{params}}}\n  noise: {self.noise_model}"
