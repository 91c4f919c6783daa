from __future__ import annotations

import math

import jax.numpy as jnp
import pytest

from hybrid_jit.core.errors import MissingDiscreteKeyError, UndefinedAssignmentError
from hybrid_jit.core.noise import Isotropic, Unit
from hybrid_jit.core.types import DiscreteKey, NodeId
from hybrid_jit.hybrid.decision_tree import DecisionTree, assignments
from hybrid_jit.hybrid.linear_mixture import HybridLinearMixture
from hybrid_jit.hybrid.mixture_factor import MixtureFactor, log_normalizing_constant
from hybrid_jit.slam.factors import between_factor, prior_factor

X = NodeId(0)
Y = NodeId(1)
MODE = DiscreteKey(0, 2)

HALF_LOG_2PI = 0.5 * math.log(2.0 * math.pi)


def build_two_mode_mixture(normalized: bool = False):
    """
    Binary mode over one scalar variable x:

      - mode 0: prior x ~ 0,  unit noise
      - mode 1: prior x ~ -2, sigma 2 (4x the variance)

    At x = 2 both components have raw error 0.5 * 2^2 = 2.
    """
    f0 = prior_factor(X, 0.0, Unit.create(1))
    f1 = prior_factor(X, -2.0, Isotropic.sigma(1, 2.0))
    return MixtureFactor((X,), (MODE,), [f0, f1], normalized=normalized), f0, f1


VALUES = {X: jnp.array([2.0])}


def test_two_mode_scenario_arbitrates_by_noise_scale():
    mixture, f0, f1 = build_two_mode_mixture()

    assert f0.error(VALUES) == pytest.approx(2.0)
    assert f1.error(VALUES) == pytest.approx(2.0)

    e0 = mixture.error(VALUES, {0: 0})
    e1 = mixture.error(VALUES, {0: 1})

    # mode 0: information 1, mode 1: information 1/4
    assert e0 == pytest.approx(2.0 - HALF_LOG_2PI, abs=1e-5)
    assert e1 == pytest.approx(2.0 - HALF_LOG_2PI - 0.5 * math.log(0.25), abs=1e-5)
    assert e1 - e0 == pytest.approx(math.log(2.0), abs=1e-5)


def test_normalized_mixture_returns_raw_error():
    mixture, _, _ = build_two_mode_mixture(normalized=True)

    assert mixture.error(VALUES, {0: 0}) == pytest.approx(2.0)
    assert mixture.error(VALUES, {0: 1}) == pytest.approx(2.0)


def test_error_selects_component():
    mixture, _, _ = build_two_mode_mixture()

    for assignment in assignments(mixture.discrete_keys):
        selected = mixture.factors(assignment)
        expected = selected.error(VALUES) + log_normalizing_constant(selected, VALUES)
        assert mixture.error(VALUES, assignment) == pytest.approx(expected, abs=1e-6)
        assert mixture.component(assignment) is selected


def test_missing_discrete_key():
    mixture, _, _ = build_two_mode_mixture()

    with pytest.raises(MissingDiscreteKeyError):
        mixture.error(VALUES, {})
    with pytest.raises(MissingDiscreteKeyError):
        mixture.error(VALUES, {5: 1})
    with pytest.raises(MissingDiscreteKeyError):
        mixture.linearize(VALUES, {5: 1})


def test_out_of_range_mode():
    mixture, _, _ = build_two_mode_mixture()
    with pytest.raises(UndefinedAssignmentError):
        mixture.error(VALUES, {0: 2})


def test_linearize_selected_component_is_not_normalized():
    mixture, f0, f1 = build_two_mode_mixture()

    lin0 = mixture.linearize(VALUES, {0: 0})
    lin1 = mixture.linearize(VALUES, {0: 1})

    assert lin0.equals(f0.linearize(VALUES))
    assert lin1.equals(f1.linearize(VALUES))
    assert float(lin1.block(X)[0, 0]) == pytest.approx(0.5)
    assert float(lin1.b[0]) == pytest.approx(-2.0)


def test_linearize_one_matches_linearize_all():
    mixture, _, _ = build_two_mode_mixture()
    linear = mixture.linearize(VALUES)

    assert isinstance(linear, HybridLinearMixture)
    assert linear.size() == mixture.factors.size()
    assert linear.keys == mixture.keys
    assert linear.discrete_keys == mixture.discrete_keys

    seen = []
    for assignment, lin in linear.items():
        seen.append(tuple(sorted(assignment.items())))
        assert lin.equals(mixture.linearize(VALUES, assignment))
    assert len(seen) == len(set(seen)) == 2


def test_two_discrete_keys():
    """Four components over two binary modes, one sigma per assignment."""
    mode_b = DiscreteKey(1, 2)
    sigmas = [1.0, 2.0, 3.0, 4.0]
    factors = [prior_factor(X, 0.0, Isotropic.sigma(1, s)) for s in sigmas]
    mixture = MixtureFactor((X,), (MODE, mode_b), factors)

    assert mixture.factors({0: 1, 1: 0}) is factors[2]

    tree = mixture.error_tree(VALUES)
    for (assignment, err), s in zip(tree.items(), sigmas):
        raw = 0.5 * (2.0 / s) ** 2
        expected = raw - HALF_LOG_2PI + math.log(s)
        assert err == pytest.approx(expected, abs=1e-5)
        assert mixture.error(VALUES, assignment) == pytest.approx(err, abs=1e-6)

    linear = mixture.linearize(VALUES)
    assert linear.size() == 4
    for assignment in assignments((MODE, mode_b)):
        assert linear(assignment).equals(mixture.linearize(VALUES, assignment))


def test_equality_is_structural():
    a, _, _ = build_two_mode_mixture()
    b, _, _ = build_two_mode_mixture()
    c, _, _ = build_two_mode_mixture(normalized=True)

    assert a.equals(b)
    assert b.equals(a)
    assert not a.equals(c)


def test_equality_is_order_sensitive():
    """
    The same two components under swapped modes make a different model:
    equality compares components in traversal order.
    """
    _, f0, f1 = build_two_mode_mixture()
    forward = MixtureFactor((X,), (MODE,), [f0, f1])
    swapped = MixtureFactor((X,), (MODE,), [f1, f0])

    assert not forward.equals(swapped)


def test_equality_checks_keys():
    _, f0, f1 = build_two_mode_mixture()
    base = MixtureFactor((X,), (MODE,), [f0, f1])
    other_mode = MixtureFactor((X,), (DiscreteKey(9, 2),), [f0, f1])
    assert not base.equals(other_mode)

    g_xy = [between_factor(X, Y, m, Unit.create(1)) for m in (0.0, 1.0)]
    g_yx = [between_factor(Y, X, m, Unit.create(1)) for m in (0.0, 1.0)]
    xy = MixtureFactor((X, Y), (MODE,), g_xy)
    yx = MixtureFactor((Y, X), (MODE,), g_yx)
    assert not xy.equals(yx)


def test_equality_with_other_kinds():
    mixture, f0, _ = build_two_mode_mixture()

    assert not mixture.equals(f0)
    assert not mixture.equals(mixture.linearize(VALUES))
    assert not mixture.equals(None)


def test_from_mapping_and_tree_constructors():
    _, f0, f1 = build_two_mode_mixture()
    positional = MixtureFactor((X,), (MODE,), [f0, f1])
    mapped = MixtureFactor.from_mapping((X,), (MODE,), {(1,): f1, (0,): f0})
    tree = MixtureFactor((X,), (MODE,), DecisionTree((MODE,), [f0, f1]))

    assert positional.equals(mapped)
    assert positional.equals(tree)


def test_construction_validation():
    _, f0, f1 = build_two_mode_mixture()

    # wrong number of components for the discrete keys
    with pytest.raises(ValueError):
        MixtureFactor((X,), (MODE,), [f0])
    # tree over different keys
    with pytest.raises(ValueError):
        MixtureFactor((X,), (MODE,), DecisionTree((DiscreteKey(4, 2),), [f0, f1]))
    # component on different continuous keys
    with pytest.raises(ValueError):
        MixtureFactor((X,), (MODE,), [f0, prior_factor(Y, 0.0, Unit.create(1))])
    # components with different error dimensions
    with pytest.raises(ValueError):
        MixtureFactor((X,), (MODE,), [f0, prior_factor(X, [0.0, 0.0], Unit.create(2))])


def test_dim():
    mixture, _, _ = build_two_mode_mixture()
    assert mixture.dim() == 1

    empty = MixtureFactor((), (), [])
    assert empty.dim() == 0
    assert empty.factors.size() == 0


def test_all_keys():
    mixture, _, _ = build_two_mode_mixture()
    assert mixture.all_keys() == (X, MODE.id)


def test_print(capsys):
    mixture, _, _ = build_two_mode_mixture()
    mixture.print()
    out = capsys.readouterr().out

    assert out.startswith("MixtureFactor ( x0 ; d0(2) ) {")
    assert "component 0:" in out
    assert "component 1:" in out
    assert str(mixture) in out
