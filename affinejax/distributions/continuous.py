# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

# The implementation largely follows the design in PyTorch's `torch.distributions`
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

import jax.numpy as jnp
import jax.random as random
from jax.scipy.special import gammaln

from affinejax.distributions import constraints
from affinejax.distributions.distribution import Distribution
from affinejax.distributions.util import is_prng_key, validate_sample


def _event_shape(dim):
    if dim is None:
        return ()
    if not isinstance(dim, int) or dim < 1:
        raise ValueError("`dim` must be a positive integer, but got {}.".format(dim))
    return (dim,)


class StandardNormal(Distribution):
    """
    Normal distribution with zero mean and unit variance. With `dim`, the
    distribution is over vectors of `dim` independent standard normal entries.

    :param int dim: length of the event vector; `None` for a scalar event.
    """

    reparametrized_params = []

    def __init__(self, dim=None, *, validate_args=None):
        super(StandardNormal, self).__init__(
            event_shape=_event_shape(dim), validate_args=validate_args
        )

    @property
    def support(self):
        return constraints.real_vector if self.event_shape else constraints.real

    def sample(self, key, sample_shape=()):
        assert is_prng_key(key)
        return random.normal(key, shape=sample_shape + self.event_shape)

    @validate_sample
    def log_prob(self, value):
        log_prob = -0.5 * jnp.square(value) - 0.5 * jnp.log(2 * jnp.pi)
        if self.event_shape:
            log_prob = jnp.sum(log_prob, axis=-1)
        return log_prob

    @property
    def mean(self):
        return jnp.zeros(self.event_shape)

    @property
    def variance(self):
        return jnp.ones(self.event_shape)


class StandardStudentT(Distribution):
    """
    Student's t distribution with `df` degrees of freedom, zero location and
    unit scale. With `dim`, this is the spherical multivariate t distribution
    over vectors of length `dim`, whose entries share one chi-squared mixing
    variable.

    :param df: positive degrees of freedom.
    :param int dim: length of the event vector; `None` for a scalar event.
    """

    arg_constraints = {"df": constraints.positive}
    reparametrized_params = ["df"]

    def __init__(self, df, dim=None, *, validate_args=None):
        if jnp.ndim(df) != 0:
            raise ValueError("`df` must be a scalar, but got shape {}.".format(jnp.shape(df)))
        self.df = df
        super(StandardStudentT, self).__init__(
            event_shape=_event_shape(dim), validate_args=validate_args
        )

    @property
    def support(self):
        return constraints.real_vector if self.event_shape else constraints.real

    def sample(self, key, sample_shape=()):
        assert is_prng_key(key)
        key_normal, key_chi2 = random.split(key)
        std_normal = random.normal(key_normal, shape=sample_shape + self.event_shape)
        chi2 = 2.0 * random.gamma(key_chi2, 0.5 * self.df, shape=sample_shape)
        chi2 = jnp.reshape(chi2, sample_shape + (1,) * len(self.event_shape))
        return std_normal * jnp.sqrt(self.df / chi2)

    @validate_sample
    def log_prob(self, value):
        p = self.event_shape[0] if self.event_shape else 1
        sq_norm = jnp.square(value)
        if self.event_shape:
            sq_norm = jnp.sum(sq_norm, axis=-1)
        z = (
            0.5 * p * jnp.log(self.df)
            + 0.5 * p * jnp.log(jnp.pi)
            + gammaln(0.5 * self.df)
            - gammaln(0.5 * (self.df + p))
        )
        return -0.5 * (self.df + p) * jnp.log1p(sq_norm / self.df) - z

    @property
    def mean(self):
        # for df <= 1. should be jnp.nan (keeping jnp.inf for consistency with scipy)
        return jnp.broadcast_to(jnp.where(self.df <= 1, jnp.inf, 0.0), self.event_shape)

    @property
    def variance(self):
        var = jnp.where(self.df > 2, jnp.divide(self.df, self.df - 2.0), jnp.inf)
        var = jnp.where(self.df <= 1, jnp.nan, var)
        return jnp.broadcast_to(var, self.event_shape)
