# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

import weakref

from jax import lax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node

from affinejax.distributions import constraints
from affinejax.distributions.exceptions import ShapeMismatch
from affinejax.distributions.parameterization import (
    ScaleRole,
    canonicalize,
    event_shape_of,
)
from affinejax.distributions.util import (
    tri_inverse,
    tri_logabsdet,
    tri_matmul,
    tri_matvec,
    tri_solve,
)

__all__ = [
    "AffineTransform",
    "ScaleRole",
    "Transform",
    "compose",
]


class Transform(object):
    domain = constraints.real
    codomain = constraints.real
    _inv = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        register_pytree_node(cls, cls.tree_flatten, cls.tree_unflatten)

    @property
    def inv(self):
        inv = None
        if self._inv is not None:
            inv = self._inv()
        if inv is None:
            inv = self.invert()
            self._inv = weakref.ref(inv)
            inv._inv = weakref.ref(self)
        return inv

    def __call__(self, x):
        raise NotImplementedError

    def invert(self):
        raise NotImplementedError

    def log_abs_det_jacobian(self):
        raise NotImplementedError

    def forward_shape(self, shape):
        """
        Infers the shape of the forward computation, given the input shape.
        Defaults to preserving shape.
        """
        return shape

    def inverse_shape(self, shape):
        """
        Infers the shapes of the inverse computation, given the output shape.
        Defaults to preserving shape.
        """
        return shape

    # Allow for pickle serialization of transforms.
    def __getstate__(self):
        attrs = {}
        for k, v in self.__dict__.items():
            if isinstance(v, weakref.ref):
                attrs[k] = None
            else:
                attrs[k] = v
        return attrs

    @classmethod
    def tree_unflatten(cls, aux_data, params):
        params_keys, aux_data = aux_data
        self = cls.__new__(cls)
        for k, v in zip(params_keys, params):
            setattr(self, k, v)

        for k, v in aux_data.items():
            setattr(self, k, v)
        return self


class AffineTransform(Transform):
    r"""
    Transform via the mapping :math:`x = scale\ @\ z + location`, or its dual
    :math:`x = precision\_scale^{-1}\ @\ z + location`.

    Exactly one of the two scale roles is active (or none, in which case the
    map is a pure translation). Both roles hold the same kind of value: a
    scalar or a lower triangular matrix with a finite, nonzero diagonal.
    Inverting a transform swaps the role of its scale value and recomputes the
    location with one triangular product or solve, so no matrix is ever
    inverted.

    :param location: a scalar or a vector. Defaults to zeros.
    :param scale: a scalar or a lower triangular matrix.
    :param precision_scale: a scalar or a lower triangular matrix, applied
        through a triangular solve.

    **Example**

    .. doctest::

       >>> import jax.numpy as jnp
       >>> from affinejax.distributions.transforms import AffineTransform
       >>> f = AffineTransform(location=3.0, scale=2.0)
       >>> f(1.0)
       Array(5., dtype=float32)
       >>> f.inv.precision_scale, f.inv.location
       (Array(2., dtype=float32), Array(-1.5, dtype=float32))
    """

    def __init__(self, location=None, scale=None, precision_scale=None):
        self.role, self.scale_value, self.location = canonicalize(
            dict(location=location, scale=scale, precision_scale=precision_scale)
        )

    @classmethod
    def from_params(cls, params):
        """
        Builds a transform from a mapping of named parameters, see
        :func:`~affinejax.distributions.parameterization.canonicalize`.
        """
        return cls._from_parts(*canonicalize(dict(params)))

    @classmethod
    def _from_parts(cls, role, scale_value, location):
        self = cls.__new__(cls)
        self.role = role
        self.scale_value = scale_value
        self.location = location
        return self

    @property
    def scale(self):
        return self.scale_value if self.role is ScaleRole.DIRECT else None

    @property
    def precision_scale(self):
        return self.scale_value if self.role is ScaleRole.INVERSE else None

    @property
    def event_shape(self):
        return event_shape_of(self.location)

    @property
    def dimension(self):
        """
        Length of the vectors this transform acts on, `0` for a scalar transform.
        """
        return self.event_shape[0] if self.event_shape else 0

    @property
    def domain(self):
        return constraints.real_vector if self.event_shape else constraints.real

    @property
    def codomain(self):
        return self.domain

    @property
    def sign(self):
        """
        Sign of the determinant of the Jacobian.
        """
        if self.role is ScaleRole.NONE:
            return jnp.ones((), dtype=jnp.result_type(self.location))
        if jnp.ndim(self.scale_value) == 0:
            return jnp.sign(self.scale_value)
        return jnp.prod(jnp.sign(jnp.diagonal(self.scale_value)))

    def params(self):
        """
        Named parameters of this transform in canonical form, such that
        ``AffineTransform.from_params(t.params())`` rebuilds ``t``.
        """
        params = {"location": self.location}
        if self.role is not ScaleRole.NONE:
            params[self.role.value] = self.scale_value
        return params

    def apply(self, z):
        if self.role is ScaleRole.DIRECT:
            x = tri_matvec(self.scale_value, z)
        elif self.role is ScaleRole.INVERSE:
            x = tri_solve(self.scale_value, z)
        else:
            x = jnp.asarray(z)
        return x + self.location

    def __call__(self, z):
        return self.apply(z)

    def invert(self):
        """
        Returns the transform computing the inverse map. The scale value is
        reused with the dual role.
        """
        if self.role is ScaleRole.DIRECT:
            location = -tri_solve(self.scale_value, self.location)
        elif self.role is ScaleRole.INVERSE:
            location = -tri_matvec(self.scale_value, self.location)
        else:
            location = -self.location
        return AffineTransform._from_parts(self.role.dual, self.scale_value, location)

    def compose(self, inner):
        """
        Shorthand for :func:`compose` with `self` as the outer transform.
        """
        return compose(self, inner)

    def log_abs_det_jacobian(self):
        """
        Log absolute determinant of the Jacobian of :meth:`apply`. It does not
        depend on the point since the map is affine.
        """
        if self.role is ScaleRole.DIRECT:
            return tri_logabsdet(self.scale_value)
        elif self.role is ScaleRole.INVERSE:
            return -tri_logabsdet(self.scale_value)
        return jnp.zeros((), dtype=jnp.result_type(self.location))

    def forward_shape(self, shape):
        return lax.broadcast_shapes(shape, jnp.shape(self.location))

    def inverse_shape(self, shape):
        return lax.broadcast_shapes(shape, jnp.shape(self.location))

    def tree_flatten(self):
        return (self.location, self.scale_value), (
            ("location", "scale_value"),
            {"role": self.role},
        )

    def __eq__(self, other):
        if not isinstance(other, AffineTransform) or self.role is not other.role:
            return False
        result = jnp.array_equal(self.location, other.location)
        if self.scale_value is not None:
            result = result & jnp.array_equal(self.scale_value, other.scale_value)
        return result

    def __repr__(self):
        args = ", ".join("{}={}".format(k, v) for k, v in self.params().items())
        return "{}({})".format(type(self).__name__, args)


def compose(outer, inner):
    """
    Composes two affine transforms into a single one, such that
    ``compose(outer, inner)(z) == outer(inner(z))``.

    Scales with the same role are multiplied together (lower triangular
    matrices are closed under multiplication). When the roles differ, the
    scale of `inner` is first brought to the role of `outer` through a
    triangular inverse; the result always keeps the role of `outer`, unless
    `outer` has no scale.

    :param AffineTransform outer: the transform applied last.
    :param AffineTransform inner: the transform applied first.
    :rtype: AffineTransform
    :raises ShapeMismatch: if the transforms act on different event shapes.
    """
    if outer.event_shape != inner.event_shape:
        raise ShapeMismatch(
            "Cannot compose a transform on event shape {} with one on event shape {}.".format(
                outer.event_shape, inner.event_shape
            )
        )
    location = outer(inner.location)
    if inner.role is ScaleRole.NONE:
        return AffineTransform._from_parts(outer.role, outer.scale_value, location)
    if outer.role is ScaleRole.NONE:
        return AffineTransform._from_parts(inner.role, inner.scale_value, location)

    inner_scale = inner.scale_value
    if inner.role is not outer.role:
        inner_scale = tri_inverse(inner_scale)
    if outer.role is ScaleRole.DIRECT:
        # x = A (B z + b) + a
        scale = tri_matmul(outer.scale_value, inner_scale)
    else:
        # x = A^-1 (B^-1 z + b) + a = (B A)^-1 z + A^-1 b + a
        scale = tri_matmul(inner_scale, outer.scale_value)
    return AffineTransform._from_parts(outer.role, scale, location)
