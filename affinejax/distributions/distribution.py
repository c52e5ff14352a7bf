# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

# The implementation follows the design in PyTorch: torch.distributions.distribution.py
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

from contextlib import contextmanager
import inspect
import math
import warnings

import numpy as np

from jax import tree_util
import jax.numpy as jnp

from affinejax.distributions.exceptions import ShapeMismatch
from affinejax.distributions.transforms import AffineTransform, compose
from affinejax.distributions.util import validate_sample
from affinejax.util import find_stack_level, not_jax_tracer

from . import constraints

_VALIDATION_ENABLED = False


def enable_validation(is_validate=True):
    """
    Enable or disable validation checks in affinejax. Validation checks provide
    useful warnings and errors, e.g. validating distribution arguments and
    support values, which is useful for debugging.

    Transforms always validate their concrete parameters, regardless of this
    setting.

    .. note:: This utility does not take effect under JAX's JIT compilation or vectorized
        transformation :func:`jax.vmap`.

    :param bool is_validate: whether to enable validation checks.
    """
    global _VALIDATION_ENABLED
    _VALIDATION_ENABLED = is_validate
    Distribution.set_default_validate_args(is_validate)


@contextmanager
def validation_enabled(is_validate=True):
    """
    Context manager that is useful when temporarily enabling/disabling validation checks.

    :param bool is_validate: whether to enable validation checks.
    """
    distribution_validation_status = _VALIDATION_ENABLED
    try:
        enable_validation(is_validate)
        yield
    finally:
        enable_validation(distribution_validation_status)


class Distribution(object):
    """
    Base class for measures in affinejax. The design largely follows from
    :mod:`torch.distributions`.

    Any object providing :meth:`log_density` and :attr:`dimension` can serve
    as the parent of an :class:`Affine` reparameterization; subclasses may
    implement either :meth:`log_prob` or :meth:`log_density`.

    :param batch_shape: The batch shape for the distribution. This designates
        independent (possibly non-identical) dimensions of a sample from the
        distribution.
    :param event_shape: The event shape for the distribution. This designates
        the dependent dimensions of a sample from the distribution. These are
        collapsed when we evaluate the log probability density of a batch of
        samples using `.log_prob`.
    :param validate_args: Whether to enable validation of distribution
        parameters and arguments to `.log_prob` method.
    """

    arg_constraints = {}
    support = None
    reparametrized_params = []
    _validate_args = False
    pytree_data_fields = ()
    pytree_aux_fields = ("_batch_shape", "_event_shape")

    # register Distribution as a pytree
    # ref: https://github.com/google/jax/issues/2916
    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        tree_util.register_pytree_node(cls, cls.tree_flatten, cls.tree_unflatten)

    @classmethod
    def gather_pytree_data_fields(cls):
        bases = inspect.getmro(cls)

        all_pytree_data_fields = ()
        for base in bases:
            if issubclass(base, Distribution):
                all_pytree_data_fields += base.__dict__.get(
                    "pytree_data_fields",
                    tuple(base.__dict__.get("arg_constraints", {}).keys()),
                )
        # remove duplicates, keeping a deterministic order
        return tuple(dict.fromkeys(all_pytree_data_fields))

    @classmethod
    def gather_pytree_aux_fields(cls) -> tuple:
        bases = inspect.getmro(cls)

        all_pytree_aux_fields = ("_validate_args",)
        for base in bases:
            if issubclass(base, Distribution):
                all_pytree_aux_fields += base.__dict__.get("pytree_aux_fields", ())
        return tuple(dict.fromkeys(all_pytree_aux_fields))

    def tree_flatten(self):
        all_pytree_data_fields_vals = tuple(
            self.__dict__.get(attr_name)
            for attr_name in type(self).gather_pytree_data_fields()
        )
        all_pytree_aux_fields_vals = tuple(
            self.__dict__.get(attr_name)
            for attr_name in type(self).gather_pytree_aux_fields()
        )
        return (
            all_pytree_data_fields_vals,
            all_pytree_aux_fields_vals,
        )

    @classmethod
    def tree_unflatten(cls, aux_data, params):
        pytree_data_fields = cls.gather_pytree_data_fields()
        pytree_aux_fields = cls.gather_pytree_aux_fields()

        pytree_data_fields_dict = dict(zip(pytree_data_fields, params))
        pytree_aux_fields_dict = dict(zip(pytree_aux_fields, aux_data))

        d = cls.__new__(cls)

        for k, v in pytree_data_fields_dict.items():
            setattr(d, k, v)

        for k, v in pytree_aux_fields_dict.items():
            setattr(d, k, v)

        # disable args validation during `tree_unflatten` it is called by jax with
        # placeholder attributes that would make validation fail
        d._validate_args = False
        Distribution.__init__(
            d,
            pytree_aux_fields_dict["_batch_shape"],
            pytree_aux_fields_dict["_event_shape"],
        )
        d._validate_args = pytree_aux_fields_dict["_validate_args"]
        return d

    @staticmethod
    def set_default_validate_args(value):
        if value not in [True, False]:
            raise ValueError
        Distribution._validate_args = value

    def __init__(self, batch_shape=(), event_shape=(), *, validate_args=None):
        self._batch_shape = batch_shape
        self._event_shape = event_shape
        if validate_args is not None:
            self._validate_args = validate_args
        if self._validate_args:
            for param, constraint in self.arg_constraints.items():
                is_valid = constraint(getattr(self, param))
                if not_jax_tracer(is_valid):
                    if not np.all(is_valid):
                        raise ValueError(
                            "{} distribution got invalid {} parameter.".format(
                                self.__class__.__name__, param
                            )
                        )
        super(Distribution, self).__init__()

    @property
    def batch_shape(self):
        """
        Returns the shape over which the distribution parameters are batched.

        :return: batch shape of the distribution.
        :rtype: tuple
        """
        return self._batch_shape

    @property
    def event_shape(self):
        """
        Returns the shape of a single sample from the distribution without
        batching.

        :return: event shape of the distribution.
        :rtype: tuple
        """
        return self._event_shape

    @property
    def dimension(self):
        """
        :return: Number of coordinates of an event, `0` for a scalar event.
        :rtype: int
        """
        return math.prod(self.event_shape) if self.event_shape else 0

    @property
    def has_rsample(self):
        return set(self.reparametrized_params) == set(self.arg_constraints)

    def rsample(self, key, sample_shape=()):
        if self.has_rsample:
            return self.sample(key, sample_shape=sample_shape)

        raise NotImplementedError

    def sample(self, key, sample_shape=()):
        """
        Returns a sample from the distribution having shape given by
        `sample_shape + batch_shape + event_shape`.

        :param jax.random.PRNGKey key: the rng_key key to be used for the distribution.
        :param tuple sample_shape: the sample shape for the distribution.
        :return: an array of shape `sample_shape + batch_shape + event_shape`
        :rtype: numpy.ndarray
        """
        raise NotImplementedError

    def log_prob(self, value):
        """
        Evaluates the log probability density for a batch of samples given by
        `value`.

        :param value: A batch of samples from the distribution.
        :return: an array with shape `value.shape[:-self.event_shape]`
        :rtype: numpy.ndarray
        """
        raise NotImplementedError

    def log_density(self, value):
        """
        Alias of :meth:`log_prob`. This is the method :class:`Affine` calls on
        its parent.
        """
        return self.log_prob(value)

    @property
    def mean(self):
        """
        Mean of the distribution.
        """
        raise NotImplementedError

    def _validate_sample(self, value):
        mask = self.support(value)
        if not_jax_tracer(mask):
            if not np.all(mask):
                warnings.warn(
                    "Out-of-support values provided to log prob method. "
                    "The value argument should be within the support.",
                    stacklevel=find_stack_level(),
                )
        return mask


def _parent_dimension(base_distribution):
    # `dimension` may be a property or a method on parents defined elsewhere
    dimension = base_distribution.dimension
    return dimension() if callable(dimension) else dimension


def _parent_event_shape(base_distribution):
    dimension = _parent_dimension(base_distribution)
    return (dimension,) if dimension else ()


class Affine(Distribution):
    r"""
    The measure of :math:`x = f(z)` where :math:`z` follows `base_distribution`
    and :math:`f` is an :class:`~affinejax.distributions.transforms.AffineTransform`.

    Its log density is

    .. math::

        \log p(x) = \log p_{base}(f^{-1}(x)) - \log |\det J_f|

    Wrapping an :class:`Affine` again does not nest: the transforms are
    composed and the result wraps the original base distribution.

    :param base_distribution: the distribution of :math:`z`. Any object with
        a `log_density(value)` method and a `dimension` works as well.
    :param AffineTransform transform: the affine map :math:`f`. Alternatively,
        pass the named parameters `location`, `scale` or `precision_scale`.
        Without either, :math:`f` is the identity.
    :param validate_args: Whether to enable validation of distribution
        parameters and arguments to `.log_prob` method.

    **Example**

    .. doctest::

       >>> from affinejax.distributions import Affine, StandardNormal
       >>> d = Affine(StandardNormal(), location=3.0, scale=2.0)
       >>> d2 = Affine(d, scale=0.5)
       >>> d2.base_dist is d.base_dist
       True
    """

    arg_constraints = {}
    pytree_data_fields = ("base_dist", "transform", "_inverse_transform")

    def __init__(
        self,
        base_distribution,
        transform=None,
        *,
        location=None,
        scale=None,
        precision_scale=None,
        validate_args=None,
    ):
        params = dict(location=location, scale=scale, precision_scale=precision_scale)
        if transform is None:
            if all(v is None for v in params.values()):
                params["location"] = jnp.zeros(_parent_event_shape(base_distribution))
            transform = AffineTransform(**params)
        elif any(v is not None for v in params.values()):
            raise ValueError(
                "Specify either `transform` or named affine parameters, not both."
            )
        elif not isinstance(transform, AffineTransform):
            raise ValueError(
                "transform must be an AffineTransform, but was {}".format(transform)
            )

        if isinstance(base_distribution, Affine):
            transform = compose(transform, base_distribution.transform)
            base_distribution = base_distribution.base_dist
        if transform.event_shape != _parent_event_shape(base_distribution):
            raise ShapeMismatch(
                "Transform of dimension {} cannot wrap a distribution of dimension {}.".format(
                    transform.dimension, _parent_dimension(base_distribution)
                )
            )
        self.base_dist = base_distribution
        self.transform = transform
        self._inverse_transform = transform.invert()
        super(Affine, self).__init__(
            getattr(base_distribution, "batch_shape", ()),
            transform.event_shape,
            validate_args=validate_args,
        )

    @property
    def location(self):
        return self.transform.location

    @property
    def scale(self):
        return self.transform.scale

    @property
    def precision_scale(self):
        return self.transform.precision_scale

    @property
    def dimension(self):
        return self.transform.dimension

    @property
    def support(self):
        return constraints.real_vector if self.event_shape else constraints.real

    @property
    def has_rsample(self):
        return getattr(self.base_dist, "has_rsample", False)

    def rsample(self, key, sample_shape=()):
        return self.transform(self.base_dist.rsample(key, sample_shape=sample_shape))

    def sample(self, key, sample_shape=()):
        return self.transform(self.base_dist.sample(key, sample_shape=sample_shape))

    @validate_sample
    def log_prob(self, value):
        z = self._inverse_transform(value)
        return self.base_dist.log_density(z) - self.transform.log_abs_det_jacobian()

    @property
    def mean(self):
        return self.transform(self.base_dist.mean)


def affine(base_distribution, **params):
    """
    Reparameterizes `base_distribution` with named affine parameters, e.g.
    ``affine(StandardNormal(2), location=mu, precision_scale=L)``.

    :rtype: Affine
    """
    params = {k: v for k, v in params.items() if v is not None}
    if not params:
        return Affine(base_distribution)
    return Affine(base_distribution, AffineTransform.from_params(params))
