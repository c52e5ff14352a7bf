# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

from affinejax.distributions import constraints
from affinejax.distributions.continuous import StandardNormal, StandardStudentT
from affinejax.distributions.distribution import (
    Affine,
    Distribution,
    affine,
    enable_validation,
    validation_enabled,
)
from affinejax.distributions.exceptions import (
    AffineError,
    AmbiguousParameterization,
    DegenerateScale,
    NonTriangularScale,
    ShapeMismatch,
    SingularSystem,
)
from affinejax.distributions.parameterization import (
    Parameterization,
    ScaleRole,
    canonicalize,
)
from affinejax.distributions.transforms import AffineTransform, compose

__all__ = [
    "Affine",
    "AffineError",
    "AffineTransform",
    "AmbiguousParameterization",
    "DegenerateScale",
    "Distribution",
    "NonTriangularScale",
    "Parameterization",
    "ScaleRole",
    "ShapeMismatch",
    "SingularSystem",
    "StandardNormal",
    "StandardStudentT",
    "affine",
    "canonicalize",
    "compose",
    "constraints",
    "enable_validation",
    "validation_enabled",
]
