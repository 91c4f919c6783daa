# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Linear Gaussian factors.

A :class:`JacobianFactor` represents the quadratic error

    E(δ) = 0.5 * || Σ_i A_i δ_i - b ||²

over a set of continuous keys, where each ``A_i`` is the (whitened)
Jacobian block for key ``i``. It is what a nonlinear factor produces when
linearized, and what a hybrid linear mixture stores per discrete mode.

Blocks are stored already whitened. If a Gaussian noise model is passed at
construction it is folded into ``A`` and ``b`` right away, so downstream
code only ever sees a unit-noise system.
"""

from __future__ import annotations
from typing import Dict, Sequence, Tuple

import jax.numpy as jnp
import numpy as np

from .types import NodeId, Values, format_key


class JacobianFactor:
    """Whitened linear factor ``0.5 * ||A δ - b||²``."""

    def __init__(
        self,
        keys: Sequence[NodeId],
        blocks: Sequence[jnp.ndarray],
        b: jnp.ndarray,
        noise_model=None,
    ) -> None:
        if len(keys) != len(blocks):
            raise ValueError("JacobianFactor needs one Jacobian block per key")

        b = jnp.atleast_1d(jnp.asarray(b, dtype=float))
        blocks = [jnp.atleast_2d(jnp.asarray(A, dtype=float)) for A in blocks]
        for key, A in zip(keys, blocks):
            if A.shape[0] != b.shape[0]:
                raise ValueError(
                    f"Block for {format_key(key)} has {A.shape[0]} rows, b has {b.shape[0]}"
                )

        if noise_model is not None:
            if not getattr(noise_model, "is_gaussian", False):
                raise ValueError("JacobianFactor only accepts Gaussian noise models")
            A_full, b = noise_model.whiten_system(jnp.concatenate(blocks, axis=1), b)
            blocks = self._split_columns(A_full, [A.shape[1] for A in blocks])

        self.keys: Tuple[NodeId, ...] = tuple(keys)
        self.blocks: Tuple[jnp.ndarray, ...] = tuple(blocks)
        self.b = b

    @staticmethod
    def _split_columns(A: jnp.ndarray, widths: Sequence[int]):
        out, start = [], 0
        for w in widths:
            out.append(A[:, start:start + w])
            start += w
        return out

    def dim(self) -> int:
        """Number of rows (error dimension)."""
        return int(self.b.shape[0])

    def block(self, key: NodeId) -> jnp.ndarray:
        return self.blocks[self.keys.index(key)]

    def jacobian(self) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """Stacked ``(A, b)`` with columns in key order."""
        return jnp.concatenate(self.blocks, axis=1), self.b

    def augmented_jacobian(self) -> jnp.ndarray:
        """``[A | b]``."""
        A, b = self.jacobian()
        return jnp.concatenate([A, b[:, None]], axis=1)

    def information(self) -> jnp.ndarray:
        """Hessian ``AᵀA`` over the stacked keys."""
        A, _ = self.jacobian()
        return A.T @ A

    def unwhitened_error(self, delta: Values) -> jnp.ndarray:
        """Residual vector ``A δ - b``."""
        r = -self.b
        for key, A in zip(self.keys, self.blocks):
            r = r + A @ jnp.asarray(delta[key])
        return r

    def error(self, delta: Values) -> float:
        r = self.unwhitened_error(delta)
        return float(0.5 * jnp.dot(r, r))

    # --- Testable ---

    def equals(self, other, tol: float = 1e-9) -> bool:
        if not isinstance(other, JacobianFactor):
            return False
        if self.keys != other.keys or self.b.shape != other.b.shape:
            return False
        for A, B in zip(self.blocks, other.blocks):
            if A.shape != B.shape or not jnp.allclose(A, B, atol=tol, rtol=0.0):
                return False
        return bool(jnp.allclose(self.b, other.b, atol=tol, rtol=0.0))

    def __str__(self) -> str:
        lines = []
        for key, A in zip(self.keys, self.blocks):
            lines.append(f"  A[{format_key(key)}] = {np.asarray(A).tolist()}")
        lines.append(f"  b = {np.asarray(self.b).tolist()}")
        return "\n".join(lines)

    def print(self, s: str = "") -> None:
        print(f"{s}JacobianFactor")
        print(self)


def zero_delta(factor: JacobianFactor) -> Dict[NodeId, jnp.ndarray]:
    """All-zero update for every key of ``factor``."""
    return {key: jnp.zeros(A.shape[1]) for key, A in zip(factor.keys, factor.blocks)}
