# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

# The implementation follows the design in PyTorch: torch.distributions.constraints.py
#
# Copyright (c) 2016-     Facebook, Inc            (Adam Paszke)
# Copyright (c) 2014-     Facebook, Inc            (Soumith Chintala)
# Copyright (c) 2011-2014 Idiap Research Institute (Ronan Collobert)
# Copyright (c) 2012-2014 Deepmind Technologies    (Koray Kavukcuoglu)
# Copyright (c) 2011-2012 NEC Laboratories America (Koray Kavukcuoglu)
# Copyright (c) 2011-2013 NYU                      (Clement Farabet)
# Copyright (c) 2006-2010 NEC Laboratories America (Ronan Collobert, Leon Bottou, Iain Melvin, Jason Weston)
# Copyright (c) 2006      Idiap Research Institute (Samy Bengio)
# Copyright (c) 2001-2004 Idiap Research Institute (Ronan Collobert, Samy Bengio, Johnny Mariethoz)
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT OWNER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.


__all__ = [
    "greater_than",
    "independent",
    "lower_triangular",
    "nonsingular_lower_triangular",
    "positive",
    "real",
    "real_vector",
    "Constraint",
]

import numpy as np

import jax.numpy as jnp
from jax.tree_util import register_pytree_node


class Constraint(object):
    """
    Abstract base class for constraints.

    A constraint object represents a region over which a variable is valid,
    e.g. within which a variable can be optimized.
    """

    _event_dim = 0

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        register_pytree_node(cls, cls.tree_flatten, cls.tree_unflatten)

    def __call__(self, x):
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.__class__.__name__[1:] + "()"

    @property
    def event_dim(self) -> int:
        return self._event_dim

    @classmethod
    def tree_unflatten(cls, aux_data, params):
        params_keys, aux_data = aux_data
        self = cls.__new__(cls)
        for k, v in zip(params_keys, params):
            setattr(self, k, v)

        for k, v in aux_data.items():
            setattr(self, k, v)
        return self


class ParameterFreeConstraint(Constraint):
    def tree_flatten(self):
        return (), ((), dict())


class _SingletonConstraint(ParameterFreeConstraint):
    """
    A constraint type which has only one canonical instance, like constraints.real,
    and unlike constraints.greater_than.
    """

    def __new__(cls):
        if (not hasattr(cls, "_instance")) or (type(cls._instance) is not cls):
            # Do not use the singleton instance of a superclass of cls.
            cls._instance = super(_SingletonConstraint, cls).__new__(cls)
        return cls._instance


class _GreaterThan(Constraint):
    def __init__(self, lower_bound) -> None:
        self.lower_bound = lower_bound

    def __call__(self, x):
        return jnp.greater(x, self.lower_bound)

    def __repr__(self) -> str:
        fmt_string = self.__class__.__name__[1:]
        fmt_string += "(lower_bound={})".format(self.lower_bound)
        return fmt_string

    def tree_flatten(self):
        return (self.lower_bound,), (("lower_bound",), dict())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _GreaterThan):
            return False
        return jnp.array_equal(self.lower_bound, other.lower_bound)


class _Positive(_SingletonConstraint, _GreaterThan):
    def __init__(self) -> None:
        super().__init__(0.0)


class _IndependentConstraint(Constraint):
    """
    Wraps a constraint by aggregating over ``reinterpreted_batch_ndims``-many
    dims when called, so that an event is valid only if all its
    independent entries are valid.
    """

    def __init__(self, base_constraint, reinterpreted_batch_ndims: int):
        assert isinstance(base_constraint, Constraint)
        assert isinstance(reinterpreted_batch_ndims, int)
        assert reinterpreted_batch_ndims >= 0
        if isinstance(base_constraint, _IndependentConstraint):
            reinterpreted_batch_ndims = (
                reinterpreted_batch_ndims + base_constraint.reinterpreted_batch_ndims
            )
            base_constraint = base_constraint.base_constraint
        self.base_constraint = base_constraint
        self.reinterpreted_batch_ndims = reinterpreted_batch_ndims
        self._event_dim = base_constraint.event_dim + reinterpreted_batch_ndims
        super().__init__()

    def __call__(self, value):
        result = self.base_constraint(value)
        if self.reinterpreted_batch_ndims == 0:
            return result
        elif jnp.ndim(result) < self.reinterpreted_batch_ndims:
            expected = self.event_dim
            raise ValueError(
                f"Expected value.dim() >= {expected} but got {jnp.ndim(value)}"
            )
        result = jnp.reshape(
            result,
            jnp.shape(result)[: jnp.ndim(result) - self.reinterpreted_batch_ndims]
            + (-1,),
        )
        return result.all(-1)

    def __repr__(self) -> str:
        return "{}({}, {})".format(
            self.__class__.__name__[1:],
            repr(self.base_constraint),
            self.reinterpreted_batch_ndims,
        )

    def tree_flatten(self):
        return (self.base_constraint,), (
            ("base_constraint",),
            {"reinterpreted_batch_ndims": self.reinterpreted_batch_ndims},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _IndependentConstraint):
            return False

        return (self.base_constraint == other.base_constraint) & (
            self.reinterpreted_batch_ndims == other.reinterpreted_batch_ndims
        )


class _Real(_SingletonConstraint):
    def __call__(self, x):
        # XXX: consider to relax this condition to [-inf, inf] interval
        return (x == x) & (x != float("inf")) & (x != float("-inf"))


class _RealVector(_IndependentConstraint, _SingletonConstraint):
    def __init__(self) -> None:
        super().__init__(_Real(), 1)


class _LowerTriangular(_SingletonConstraint):
    """Square matrices whose entries above the diagonal are all zero."""

    _event_dim = 2

    def __call__(self, x):
        xp = np if isinstance(x, (np.ndarray, np.generic)) else jnp
        upper = xp.triu(x, k=1)
        return xp.all(xp.reshape(upper == 0, x.shape[:-2] + (-1,)), axis=-1)


class _NonsingularLowerTriangular(_LowerTriangular):
    """Lower triangular matrices with a finite, nonzero diagonal."""

    def __call__(self, x):
        xp = np if isinstance(x, (np.ndarray, np.generic)) else jnp
        diag = xp.diagonal(x, axis1=-2, axis2=-1)
        valid_diag = xp.all(xp.isfinite(diag) & (diag != 0), axis=-1)
        return xp.logical_and(super().__call__(x), valid_diag)


greater_than = _GreaterThan
independent = _IndependentConstraint
lower_triangular = _LowerTriangular()
nonsingular_lower_triangular = _NonsingularLowerTriangular()
positive = _Positive()
real = _Real()
real_vector = _RealVector()
