# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

from collections import namedtuple
import itertools
import pickle

import numpy as np
from numpy.testing import assert_allclose
import pytest

import jax
from jax import jacfwd, jit, vmap
import jax.numpy as jnp

from affinejax.distributions import constraints
from affinejax.distributions.exceptions import DegenerateScale, ShapeMismatch
from affinejax.distributions.transforms import AffineTransform, ScaleRole, compose

L1 = np.array([[2.0, 0.0, 0.0], [0.5, 1.5, 0.0], [-0.3, 0.2, 0.8]])
L2 = np.array([[0.7, 0.0, 0.0], [-1.0, -1.2, 0.0], [0.4, 0.9, 2.5]])
L3 = np.array([[1.1, 0.0, 0.0], [0.0, 0.6, 0.0], [2.0, -0.5, -1.3]])
MU1 = np.array([1.0, -2.0, 0.5])
MU2 = np.array([-0.3, 0.4, 3.0])


class T(namedtuple("TestCase", ["params", "event_shape"])):
    pass


TRANSFORMS = {
    "scalar_identity": T(dict(), ()),
    "scalar_shift": T(dict(location=-1.5), ()),
    "scalar_scale": T(dict(location=3.0, scale=2.0), ()),
    "scalar_negative_scale": T(dict(location=0.5, scale=-0.25), ()),
    "scalar_precision": T(dict(location=-2.0, precision_scale=4.0), ()),
    "vector_shift": T(dict(location=MU1), (3,)),
    "vector_scale": T(dict(location=MU1, scale=L1), (3,)),
    "vector_scale_no_location": T(dict(scale=L2), (3,)),
    "vector_precision": T(dict(location=MU2, precision_scale=L2), (3,)),
    "vector_precision_signed": T(dict(location=MU1, precision_scale=L3), (3,)),
}

VECTOR_TRANSFORMS = {k: v for k, v in TRANSFORMS.items() if v.event_shape}


def _points(event_shape, batch_shape=(7,)):
    rng = np.random.default_rng(17)
    return jnp.array(rng.normal(size=batch_shape + event_shape))


def _assert_apply_equal(f, g, event_shape):
    z = _points(event_shape)
    assert_allclose(f(z), g(z), rtol=1e-9, atol=1e-10)


def test_scalar_example():
    f = AffineTransform(location=3.0, scale=2.0)
    assert f.apply(1.0) == 5.0
    f_inv = f.invert()
    assert f_inv.role is ScaleRole.INVERSE
    assert f_inv.scale is None
    assert f_inv.precision_scale == 2.0
    assert f_inv.location == -1.5
    assert_allclose(f.apply(f_inv.apply(4.0)), 4.0)
    assert_allclose(f_inv.apply(f.apply(4.0)), 4.0)


def test_zero_scale():
    with pytest.raises(DegenerateScale):
        AffineTransform(scale=0.0)


@pytest.mark.parametrize(
    "params, event_shape", TRANSFORMS.values(), ids=TRANSFORMS.keys()
)
def test_round_trip(params, event_shape):
    f = AffineTransform(**params)
    x = _points(event_shape)
    assert_allclose(f(f.invert()(x)), x, rtol=1e-9, atol=1e-10)
    assert_allclose(f.invert()(f(x)), x, rtol=1e-9, atol=1e-10)
    assert_allclose(f.inv.inv(x), f(x))


@pytest.mark.parametrize(
    "params, event_shape", TRANSFORMS.values(), ids=TRANSFORMS.keys()
)
def test_invert_swaps_role(params, event_shape):
    f = AffineTransform(**params)
    f_inv = f.invert()
    assert f_inv.role is f.role.dual
    if f.role is not ScaleRole.NONE:
        # the scale value is reused as is, never inverted
        assert f_inv.scale_value is f.scale_value
    assert f_inv.event_shape == f.event_shape


@pytest.mark.parametrize(
    "params, event_shape", TRANSFORMS.values(), ids=TRANSFORMS.keys()
)
def test_log_abs_det_jacobian(params, event_shape):
    f = AffineTransform(**params)
    assert_allclose(
        f.log_abs_det_jacobian() + f.invert().log_abs_det_jacobian(), 0.0, atol=1e-12
    )
    z = _points(event_shape, batch_shape=())
    jac = jacfwd(f.apply)(z)
    if event_shape:
        expected = jnp.linalg.slogdet(jac).logabsdet
        assert_allclose(f.sign, jnp.linalg.slogdet(jac).sign)
    else:
        expected = jnp.log(jnp.abs(jac))
        assert_allclose(f.sign, jnp.sign(jac))
    assert_allclose(f.log_abs_det_jacobian(), expected, rtol=1e-9, atol=1e-12)


@pytest.mark.parametrize(
    "outer, inner",
    [
        (TRANSFORMS[a].params, TRANSFORMS[b].params)
        for a, b in itertools.product(VECTOR_TRANSFORMS, repeat=2)
    ],
    ids=["{}-{}".format(a, b) for a, b in itertools.product(VECTOR_TRANSFORMS, repeat=2)],
)
def test_compose(outer, inner):
    f, g = AffineTransform(**outer), AffineTransform(**inner)
    fg = compose(f, g)
    _assert_apply_equal(fg, lambda z: f(g(z)), (3,))
    assert_allclose(
        fg.log_abs_det_jacobian(),
        f.log_abs_det_jacobian() + g.log_abs_det_jacobian(),
        rtol=1e-9,
        atol=1e-12,
    )
    if ScaleRole.NONE in (f.role, g.role):
        assert fg.role is (g.role if f.role is ScaleRole.NONE else f.role)
    else:
        assert fg.role is f.role
    if fg.scale_value is not None:
        assert jnp.shape(fg.scale_value) == (3, 3)
        assert_allclose(np.triu(np.asarray(fg.scale_value), 1), 0.0, atol=1e-12)


@pytest.mark.parametrize(
    "names",
    list(
        itertools.product(
            ["vector_scale", "vector_precision", "vector_shift"], repeat=3
        )
    ),
    ids=str,
)
def test_compose_associative(names):
    f, g, h = (AffineTransform(**TRANSFORMS[name].params) for name in names)
    _assert_apply_equal(compose(compose(f, g), h), compose(f, compose(g, h)), (3,))


@pytest.mark.parametrize(
    "outer, inner",
    list(
        itertools.product(
            ["scalar_shift", "scalar_scale", "scalar_precision"], repeat=2
        )
    ),
)
def test_compose_scalar(outer, inner):
    f = AffineTransform(**TRANSFORMS[outer].params)
    g = AffineTransform(**TRANSFORMS[inner].params)
    _assert_apply_equal(f.compose(g), lambda z: f(g(z)), ())


def test_compose_direct_scales_multiply():
    f = AffineTransform(location=MU1, scale=L1)
    g = AffineTransform(location=MU2, scale=L2)
    fg = compose(f, g)
    assert fg.role is ScaleRole.DIRECT
    assert_allclose(fg.scale, L1 @ L2, rtol=1e-12)
    assert_allclose(fg.location, L1 @ MU2 + MU1, rtol=1e-12)


def test_compose_with_inverse_is_identity():
    f = AffineTransform(location=MU1, precision_scale=L3)
    identity = compose(f, f.invert())
    _assert_apply_equal(identity, lambda z: z, (3,))
    assert_allclose(identity.log_abs_det_jacobian(), 0.0, atol=1e-12)


def test_repeated_composition_stays_flat():
    f = AffineTransform(location=np.full(3, 0.1), scale=0.9 * np.eye(3))
    g = f
    for _ in range(50):
        g = compose(f, g)
    assert isinstance(g.scale_value, jax.Array)
    assert_allclose(g.scale, 0.9**51 * np.eye(3), rtol=1e-9)


def test_compose_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        compose(AffineTransform(scale=2.0), AffineTransform(scale=L1))


@pytest.mark.parametrize(
    "params, event_shape", TRANSFORMS.values(), ids=TRANSFORMS.keys()
)
def test_params_round_trip(params, event_shape):
    f = AffineTransform(**params)
    g = AffineTransform.from_params(f.params())
    assert f == g
    assert g.event_shape == event_shape
    assert g.dimension == (event_shape[0] if event_shape else 0)
    assert set(f.params()) <= {"location", "scale", "precision_scale"}


def test_domain():
    assert AffineTransform(location=2.0).domain is constraints.real
    assert AffineTransform(scale=L1).codomain is constraints.real_vector
    f = AffineTransform(location=MU1, scale=L1)
    assert f.forward_shape((5, 3)) == (5, 3)
    assert f.inverse_shape((3,)) == (3,)


def test_eq():
    f = AffineTransform(location=MU1, scale=L1)
    assert f == AffineTransform(location=MU1, scale=L1)
    assert f != AffineTransform(location=MU1, precision_scale=L1)
    assert f != AffineTransform(location=MU2, scale=L1)
    assert f != 1.0


def test_pickle():
    f = AffineTransform(location=MU2, precision_scale=L2)
    f.inv  # populate the cached inverse
    g = pickle.loads(pickle.dumps(f))
    assert g == f
    _assert_apply_equal(g.inv, f.inv, (3,))


@pytest.mark.parametrize(
    "params, event_shape", TRANSFORMS.values(), ids=TRANSFORMS.keys()
)
def test_transform_pytree(params, event_shape):
    f = AffineTransform(**params)
    z = _points(event_shape)

    assert_allclose(jit(lambda t, x: t(x))(f, z), f(z))
    assert_allclose(jit(lambda t, x: t.inv(x))(f, z), f.inv(z), rtol=1e-12)
    assert jit(lambda t: t)(f) == f

    @jit
    def check_transforms(t1, t2):
        return t1 == t2

    assert check_transforms(f, AffineTransform(**params))


def test_vmap_over_transforms():
    locations = jnp.array(np.stack([MU1, MU2]))
    scales = jnp.array(np.stack([L1, L2]))
    transforms = vmap(lambda loc, s: AffineTransform(location=loc, scale=s))(
        locations, scales
    )
    z = jnp.ones(3)
    actual = vmap(lambda t: t(z))(transforms)
    assert_allclose(actual[0], L1 @ z + MU1, rtol=1e-12)
    assert_allclose(actual[1], L2 @ z + MU2, rtol=1e-12)
    logdet = vmap(lambda t: t.log_abs_det_jacobian())(transforms)
    assert_allclose(logdet, [np.log(2.0 * 1.5 * 0.8), np.log(0.7 * 1.2 * 2.5)])
