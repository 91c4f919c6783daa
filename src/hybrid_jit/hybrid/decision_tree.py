# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
Decision trees over discrete assignments.

A :class:`DecisionTree` is a total function from assignments of a fixed,
ordered tuple of :class:`~hybrid_jit.core.types.DiscreteKey` to leaves. It
is the selector a mixture factor uses to pick a continuous component, and
the container a hybrid linear mixture uses for its linear components.

Layout
------
Leaves are kept in a flat list. An assignment maps to a leaf index by mixed
radix arithmetic, the first key being the most significant digit:

    keys  = (d0 with card 2, d1 with card 3)
    index = d0 * 3 + d1

so ``leaves[0]`` is ``{d0: 0, d1: 0}``, ``leaves[1]`` is ``{d0: 0, d1: 1}``
and so on. This is also the order :meth:`DecisionTree.items` walks, so
traversal is stable and building from a positional list of leaves lines up
with it. For a single key, ``leaves[i]`` is simply the leaf for value ``i``.

A tree with no keys holds either one leaf (a constant) or no leaves at all
(the empty tree, ``size() == 0``).
"""

from __future__ import annotations
import itertools
import math
import operator
from typing import (
    Any, Callable, Generic, Iterable, Iterator, List, Mapping, Sequence, Tuple, TypeVar, Union,
)

from ..core.errors import UndefinedAssignmentError
from ..core.types import DiscreteKey, DiscreteKeys, DiscreteValues

T = TypeVar("T")
U = TypeVar("U")

AssignmentLike = Union[Mapping[int, int], Sequence[int]]


def assignments(keys: Sequence[DiscreteKey]) -> Iterator[DiscreteValues]:
    """Every assignment of ``keys``, first key most significant."""
    ids = [k.id for k in keys]
    for combo in itertools.product(*(range(k.cardinality) for k in keys)):
        yield dict(zip(ids, combo))


def num_assignments(keys: Sequence[DiscreteKey]) -> int:
    return math.prod(k.cardinality for k in keys)


class DecisionTree(Generic[T]):
    """Total mapping from discrete assignments to leaves."""

    def __init__(self, keys: Sequence[DiscreteKey], leaves: Iterable[T]) -> None:
        keys = tuple(keys)
        ids = [k.id for k in keys]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate discrete keys: {ids}")

        leaves = list(leaves)
        expected = num_assignments(keys)
        # no keys and no leaves is the empty tree
        if (keys or leaves) and len(leaves) != expected:
            raise ValueError(
                f"Expected {expected} leaves for discrete keys "
                f"{[str(k) for k in keys]}, got {len(leaves)}"
            )

        self._keys: DiscreteKeys = keys
        self._leaves: List[T] = leaves

        strides, stride = [], 1
        for k in reversed(keys):
            strides.append(stride)
            stride *= k.cardinality
        self._strides: Tuple[int, ...] = tuple(reversed(strides))

    @classmethod
    def from_mapping(
        cls,
        keys: Sequence[DiscreteKey],
        mapping: Union[Mapping[Tuple[int, ...], T], Iterable[Tuple[AssignmentLike, T]]],
    ) -> "DecisionTree[T]":
        """
        Build from explicit ``assignment -> leaf`` pairs.

        ``mapping`` is either a dict keyed by value tuples (in key order) or
        an iterable of ``(assignment, leaf)`` pairs where an assignment is a
        ``DiscreteValues`` dict or a value tuple. Every assignment has to be
        given exactly once.
        """
        keys = tuple(keys)
        pairs = mapping.items() if isinstance(mapping, Mapping) else mapping

        # index computation only needs the keys, not the leaves
        shape = cls(keys, [None] * num_assignments(keys))
        slots: List[Any] = [None] * shape.size()
        filled = [False] * shape.size()

        for assignment, leaf in pairs:
            idx = shape.index_of(assignment)
            if filled[idx]:
                raise ValueError(f"Assignment {assignment} given more than once")
            slots[idx] = leaf
            filled[idx] = True

        missing = [a for a, f in zip(assignments(keys), filled) if not f]
        if missing:
            raise UndefinedAssignmentError(f"No leaf given for assignments {missing}")
        return cls(keys, slots)

    # --- Structure ---

    @property
    def keys(self) -> DiscreteKeys:
        return self._keys

    def size(self) -> int:
        """Number of leaves."""
        return len(self._leaves)

    def __len__(self) -> int:
        return len(self._leaves)

    def leaves(self) -> List[T]:
        return list(self._leaves)

    def leaf(self, index: int) -> T:
        return self._leaves[index]

    # --- Selection ---

    def index_of(self, assignment: AssignmentLike) -> int:
        """Leaf index for ``assignment``; extra keys are ignored."""
        if not self._leaves:
            raise UndefinedAssignmentError("Decision tree is empty")

        if isinstance(assignment, Mapping):
            values = []
            for k in self._keys:
                if k.id not in assignment:
                    raise UndefinedAssignmentError(
                        f"Assignment {dict(assignment)} has no value for discrete key {k.id}"
                    )
                values.append(assignment[k.id])
        else:
            values = list(assignment)
            if len(values) != len(self._keys):
                raise UndefinedAssignmentError(
                    f"Expected {len(self._keys)} values, got {tuple(values)}"
                )

        index = 0
        for k, v, stride in zip(self._keys, values, self._strides):
            try:
                v = operator.index(v)
            except TypeError:
                raise UndefinedAssignmentError(
                    f"Value {v!r} for discrete key {k.id} is not an integer"
                ) from None
            if not 0 <= v < k.cardinality:
                raise UndefinedAssignmentError(
                    f"Value {v} out of range for discrete key {k}"
                )
            index += v * stride
        return index

    def select(self, assignment: AssignmentLike) -> T:
        return self._leaves[self.index_of(assignment)]

    def __call__(self, assignment: AssignmentLike) -> T:
        return self.select(assignment)

    # --- Traversal ---

    def items(self) -> Iterator[Tuple[DiscreteValues, T]]:
        """Fresh ``(assignment, leaf)`` traversal in canonical order."""
        return zip(assignments(self._keys), iter(self._leaves))

    def __iter__(self) -> Iterator[Tuple[DiscreteValues, T]]:
        return self.items()

    def for_each(self, visitor: Callable[[DiscreteValues, T], None]) -> None:
        for assignment, leaf in self.items():
            visitor(assignment, leaf)

    def apply(self, fn: Callable[[T], U]) -> "DecisionTree[U]":
        """Same keys, each leaf replaced by ``fn(leaf)``."""
        return DecisionTree(self._keys, [fn(leaf) for leaf in self._leaves])

    def apply_with_assignment(self, fn: Callable[[DiscreteValues, T], U]) -> "DecisionTree[U]":
        return DecisionTree(self._keys, [fn(a, leaf) for a, leaf in self.items()])

    def __str__(self) -> str:
        lines = [f"DecisionTree keys={[str(k) for k in self._keys]}"]
        for assignment, leaf in self.items():
            lines.append(f"  {assignment}: {leaf}")
        return "\n".join(lines)
