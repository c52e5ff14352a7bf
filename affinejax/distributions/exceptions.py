# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

"""Errors raised while building or evaluating affine reparameterizations."""

__all__ = [
    "AffineError",
    "AmbiguousParameterization",
    "DegenerateScale",
    "NonTriangularScale",
    "ShapeMismatch",
    "SingularSystem",
]


class AffineError(ValueError):
    """Base class for all affine reparameterization errors."""


class ShapeMismatch(AffineError):
    """
    Raised when the dimensions of a location and a scale disagree, or when a
    transform does not match the event shape of the measure it wraps.
    """


class DegenerateScale(AffineError):
    """Raised when a scale has a zero or non-finite diagonal entry."""


class NonTriangularScale(DegenerateScale):
    """Raised when a scale matrix has nonzero entries above its diagonal."""


class AmbiguousParameterization(AffineError):
    """Raised when both `scale` and `precision_scale` are given."""


class SingularSystem(AffineError):
    """Raised when a triangular solve meets a zero pivot."""
