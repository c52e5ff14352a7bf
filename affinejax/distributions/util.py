# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

import numpy as np

import jax
import jax.numpy as jnp
from jax.scipy.linalg import solve_triangular

from affinejax.distributions.exceptions import SingularSystem
from affinejax.util import not_jax_tracer

# Lower-triangular primitives. A scale is either a scalar (rank 0) or a lower
# triangular matrix (rank 2); vectors may carry leading batch dimensions.


def _check_pivots(M):
    if not_jax_tracer(M):
        diag = M if jnp.ndim(M) == 0 else jnp.diagonal(M, axis1=-2, axis2=-1)
        if np.any(np.asarray(diag) == 0):
            raise SingularSystem(
                "Triangular system is singular: found a zero on the diagonal."
            )


def tri_matvec(M, v):
    """
    Computes ``M @ v`` for a lower triangular matrix ``M``.

    :param M: a scalar or a lower triangular matrix of shape `(n, n)`.
    :param v: an array of shape `batch_shape + (n,)`, or any shape when `M` is
        a scalar.
    :return: an array with the same shape as `v`.
    """
    v = jnp.asarray(v)
    if jnp.ndim(M) == 0:
        return M * v
    return jnp.squeeze(jnp.matmul(M, v[..., jnp.newaxis]), axis=-1)


def tri_solve(M, v):
    """
    Solves ``M @ x = v`` for ``x`` by forward substitution.

    :param M: a scalar or a lower triangular matrix of shape `(n, n)`.
    :param v: an array of shape `batch_shape + (n,)`, or any shape when `M` is
        a scalar.
    :return: an array with the same shape as `v`.
    :raises SingularSystem: if a concrete `M` has a zero diagonal entry.
    """
    _check_pivots(M)
    v = jnp.asarray(v)
    if jnp.ndim(M) == 0:
        return v / M
    original_shape = jnp.shape(v)
    vt = jnp.reshape(v, (-1, original_shape[-1])).T
    xt = solve_triangular(M, vt, lower=True)
    return jnp.reshape(xt.T, original_shape)


def tri_logabsdet(M):
    """
    Log absolute determinant of a triangular matrix, i.e. the sum of the log
    absolute values of its diagonal. For a scalar this is ``log|M|``.
    """
    if jnp.ndim(M) == 0:
        return jnp.log(jnp.abs(M))
    return jnp.sum(jnp.log(jnp.abs(jnp.diagonal(M, axis1=-2, axis2=-1))), axis=-1)


def tri_matmul(A, B):
    """
    Product of two lower triangular matrices. Lower triangular matrices are
    closed under multiplication, so the result is lower triangular as well.
    """
    if jnp.ndim(A) == 0 or jnp.ndim(B) == 0:
        return A * B
    return jnp.matmul(A, B)


def tri_inverse(M):
    """
    Inverse of a lower triangular matrix by forward substitution against the
    identity. The result is lower triangular.
    """
    _check_pivots(M)
    if jnp.ndim(M) == 0:
        return 1.0 / M
    eye = jnp.eye(jnp.shape(M)[-1], dtype=jnp.result_type(M))
    return solve_triangular(M, eye, lower=True)


# src: https://github.com/google/jax/blob/5a41779fbe12ba7213cd3aa1169d3b0ffb02a094/jax/_src/random.py#L95
def is_prng_key(key):
    try:
        if jax.dtypes.issubdtype(key.dtype, jax.dtypes.prng_key):
            return key.shape == ()
        return key.shape == (2,) and key.dtype == np.uint32
    except AttributeError:
        return False


def validate_sample(log_prob_fn):
    def wrapper(self, *args, **kwargs):
        log_prob = log_prob_fn(self, *args, **kwargs)
        if self._validate_args:
            value = kwargs["value"] if "value" in kwargs else args[0]
            mask = self._validate_sample(value)
            log_prob = jnp.where(mask, log_prob, -jnp.inf)
        return log_prob

    return wrapper
