# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

"""
Resolution of named affine parameters into one canonical form.

An affine map is described by a subset of ``location``, ``scale`` and
``precision_scale``. At most one of the two scale roles may be given; the
role that is present (or its absence) decides how the map acts on a point:

- ``scale``: :math:`x = scale\\ @\\ z + location`
- ``precision_scale``: :math:`x = precision\\_scale^{-1}\\ @\\ z + location`
- neither: :math:`x = z + location`
"""

from collections import namedtuple
import enum

import numpy as np

import jax.numpy as jnp

from affinejax.distributions import constraints
from affinejax.distributions.exceptions import (
    AmbiguousParameterization,
    DegenerateScale,
    NonTriangularScale,
    ShapeMismatch,
)
from affinejax.util import not_jax_tracer

__all__ = [
    "PARAM_NAMES",
    "Parameterization",
    "ScaleRole",
    "canonicalize",
    "event_shape_of",
]

PARAM_NAMES = ("location", "scale", "precision_scale")


class ScaleRole(enum.Enum):
    """Which role the scale value of an affine map plays."""

    NONE = None
    DIRECT = "scale"
    INVERSE = "precision_scale"

    @property
    def dual(self):
        if self is ScaleRole.DIRECT:
            return ScaleRole.INVERSE
        if self is ScaleRole.INVERSE:
            return ScaleRole.DIRECT
        return self


Parameterization = namedtuple("Parameterization", ["role", "scale", "location"])


def _as_float_array(x):
    x = jnp.asarray(x)
    if not jnp.issubdtype(x.dtype, jnp.inexact):
        x = x.astype(jnp.result_type(float))
    return x


def event_shape_of(value):
    """
    Event shape implied by a location or a scale: `()` for scalars and
    `(n,)` for vectors of length `n` or `(n, n)` matrices.
    """
    return jnp.shape(value)[:1]


def _validate_scale(name, scale):
    ndim = jnp.ndim(scale)
    if ndim not in (0, 2):
        raise ShapeMismatch(
            "`{}` must be a scalar or a square matrix, but got shape {}.".format(
                name, jnp.shape(scale)
            )
        )
    if ndim == 2 and scale.shape[0] != scale.shape[1]:
        raise ShapeMismatch(
            "`{}` must be a square matrix, but got shape {}.".format(name, scale.shape)
        )
    if not not_jax_tracer(scale):
        return
    if ndim == 0:
        value = float(scale)
        if value == 0 or not np.isfinite(value):
            raise DegenerateScale(
                "`{}` must be finite and nonzero, but got {}.".format(name, value)
            )
        return
    if not constraints.lower_triangular(scale):
        raise NonTriangularScale(
            "`{}` must be lower triangular: found nonzero entries above the diagonal.".format(
                name
            )
        )
    if not constraints.nonsingular_lower_triangular(scale):
        raise DegenerateScale(
            "`{}` must have a finite, nonzero diagonal, but got {}.".format(
                name, np.diagonal(np.asarray(scale))
            )
        )


def canonicalize(params):
    """
    Resolves a mapping of named affine parameters into a
    :class:`Parameterization` ``(role, scale, location)``.

    Missing ``location`` defaults to zeros of the inferred event shape and a
    missing scale yields :attr:`ScaleRole.NONE`. Without any parameter the
    result is the scalar identity map. Shapes are always checked; the values
    of the scale are checked whenever they are concrete (i.e. not traced by
    :func:`jax.jit` or :func:`jax.vmap`).

    :param dict params: mapping with keys among ``location``, ``scale`` and
        ``precision_scale``. Entries set to `None` are treated as absent.
    :return: the canonical parameterization.
    :rtype: Parameterization
    :raises AmbiguousParameterization: if both ``scale`` and
        ``precision_scale`` are given.
    :raises ShapeMismatch: if a parameter has an invalid rank or the
        dimensions of location and scale disagree.
    :raises DegenerateScale: if the scale has a zero or non-finite diagonal
        entry, or nonzero entries above the diagonal.
    """
    unknown = set(params) - set(PARAM_NAMES)
    if unknown:
        raise ValueError(
            "Unknown affine parameter(s) {}; expected a subset of {}.".format(
                sorted(unknown), PARAM_NAMES
            )
        )
    params = {k: v for k, v in params.items() if v is not None}
    if "scale" in params and "precision_scale" in params:
        raise AmbiguousParameterization(
            "Only one of `scale` and `precision_scale` can be specified."
        )

    role, scale = ScaleRole.NONE, None
    for candidate in (ScaleRole.DIRECT, ScaleRole.INVERSE):
        if candidate.value in params:
            role = candidate
            scale = _as_float_array(params[candidate.value])
            _validate_scale(candidate.value, scale)

    location = params.get("location")
    if location is not None:
        location = _as_float_array(location)
        if jnp.ndim(location) > 1:
            raise ShapeMismatch(
                "`location` must be a scalar or a vector, but got shape {}.".format(
                    jnp.shape(location)
                )
            )
        if scale is not None and event_shape_of(location) != event_shape_of(scale):
            raise ShapeMismatch(
                "`location` with shape {} does not match `{}` with shape {}.".format(
                    jnp.shape(location), role.value, jnp.shape(scale)
                )
            )
    elif scale is not None:
        location = jnp.zeros(event_shape_of(scale), dtype=scale.dtype)
    else:
        location = jnp.zeros((), dtype=jnp.result_type(float))
    return Parameterization(role, scale, location)
