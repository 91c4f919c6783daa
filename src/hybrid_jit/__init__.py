# Copyright (c) 2025.
# This file is part of hybrid-jit, released under the MIT License.
"""
hybrid-jit: hybrid discrete-continuous mixture factors in JAX.

The public surface is re-exported here:

    • keys and errors      (core.types, core.errors)
    • noise models         (core.noise)
    • continuous factors   (core.nonlinear, core.linear, slam.factors)
    • hybrid factors       (hybrid.decision_tree, hybrid.mixture_factor,
                            hybrid.linear_mixture)
"""

from .core.errors import (
    HybridFactorError,
    MissingDiscreteKeyError,
    SingularInformationError,
    UndefinedAssignmentError,
)
from .core.linear import JacobianFactor
from .core.noise import Cauchy, Diagonal, Gaussian, Huber, Isotropic, Robust, Unit
from .core.nonlinear import NoiseModelFactor, NonlinearFactor
from .core.types import DiscreteKey, DiscreteValues, NodeId, Values
from .hybrid.decision_tree import DecisionTree, assignments
from .hybrid.hybrid_factor import HybridFactor
from .hybrid.linear_mixture import HybridLinearMixture
from .hybrid.mixture_factor import MixtureFactor, log_normalizing_constant
from .slam.factors import between_factor, prior_factor, range_factor

__version__ = "0.1.0"
