# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

import numpy as np
from numpy.testing import assert_allclose
import pytest

import jax
import jax.numpy as jnp

from affinejax.distributions.exceptions import (
    AmbiguousParameterization,
    DegenerateScale,
    NonTriangularScale,
    ShapeMismatch,
)
from affinejax.distributions.parameterization import ScaleRole, canonicalize


def test_empty_is_scalar_identity():
    role, scale, location = canonicalize({})
    assert role is ScaleRole.NONE
    assert scale is None
    assert jnp.shape(location) == ()
    assert location == 0.0


@pytest.mark.parametrize(
    "params, role",
    [
        (dict(scale=2.0), ScaleRole.DIRECT),
        (dict(precision_scale=2.0), ScaleRole.INVERSE),
        (dict(location=1.0), ScaleRole.NONE),
        (dict(location=1.0, scale=None, precision_scale=3.0), ScaleRole.INVERSE),
    ],
)
def test_role(params, role):
    assert canonicalize(params).role is role


def test_default_location_matches_scale():
    L = np.array([[1.0, 0.0, 0.0], [0.5, 2.0, 0.0], [0.1, 0.2, 3.0]])
    p = canonicalize(dict(precision_scale=L))
    assert p.role is ScaleRole.INVERSE
    assert_allclose(p.scale, L)
    assert p.location.shape == (3,)
    assert_allclose(p.location, 0.0)


def test_integer_inputs_are_promoted():
    p = canonicalize(dict(location=[1, 2], scale=np.array([[1, 0], [2, 3]])))
    assert jnp.issubdtype(p.location.dtype, jnp.floating)
    assert jnp.issubdtype(p.scale.dtype, jnp.floating)


def test_ambiguous():
    with pytest.raises(AmbiguousParameterization):
        canonicalize(dict(scale=1.0, precision_scale=1.0))


def test_unknown_name():
    with pytest.raises(ValueError, match="Unknown affine parameter"):
        canonicalize(dict(loc=1.0))


@pytest.mark.parametrize(
    "params",
    [
        dict(location=np.zeros(2), scale=np.eye(3)),
        dict(location=np.zeros(2), scale=2.0),
        dict(location=0.0, precision_scale=np.eye(2)),
        dict(location=np.zeros((2, 2))),
        dict(scale=np.ones(3)),
        dict(scale=np.ones((2, 3))),
        dict(precision_scale=np.ones((2, 2, 2))),
    ],
)
def test_shape_mismatch(params):
    with pytest.raises(ShapeMismatch):
        canonicalize(params)


@pytest.mark.parametrize(
    "scale",
    [
        0.0,
        np.inf,
        np.nan,
        np.array([[1.0, 0.0], [1.0, 0.0]]),
        np.array([[np.inf, 0.0], [1.0, 1.0]]),
    ],
)
@pytest.mark.parametrize("name", ["scale", "precision_scale"])
def test_degenerate_scale(name, scale):
    with pytest.raises(DegenerateScale):
        canonicalize({name: scale})


def test_non_triangular_scale():
    with pytest.raises(NonTriangularScale) as exc_info:
        canonicalize(dict(scale=np.array([[1.0, 0.5], [0.0, 1.0]])))
    assert isinstance(exc_info.value, DegenerateScale)


def test_values_not_checked_under_jit():
    @jax.jit
    def get_location(scale):
        return canonicalize(dict(scale=scale)).location

    assert get_location(jnp.zeros((2, 2))).shape == (2,)
