# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Exception types raised by hybrid-jit.

UndefinedAssignmentError
    A discrete assignment does not cover every key of a decision tree, or
    holds a value outside a key's cardinality.

MissingDiscreteKeyError
    A hybrid factor was evaluated without a value for one of its discrete
    keys. Subclass of :class:`UndefinedAssignmentError`.

SingularInformationError
    A normalizing constant was requested for a component whose information
    matrix is singular or not positive definite.
"""


class HybridFactorError(Exception):
    """Base class for errors raised by hybrid factors and decision trees."""


class UndefinedAssignmentError(HybridFactorError, KeyError):
    """Discrete assignment is incomplete or out of range."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class MissingDiscreteKeyError(UndefinedAssignmentError):
    """A required discrete key has no value in the given assignment."""

    def __init__(self, key_id: int, message: str = "") -> None:
        self.key_id = key_id
        super().__init__(message or f"No value given for discrete key {key_id}")


class SingularInformationError(HybridFactorError, ValueError):
    """Information matrix has a non-positive determinant."""
