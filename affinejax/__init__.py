# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

from affinejax import distributions
from affinejax.distributions.distribution import enable_validation, validation_enabled
from affinejax.util import enable_x64, set_platform, set_rng_seed
from affinejax.version import __version__

set_platform("cpu")


__all__ = [
    "__version__",
    "distributions",
    "enable_validation",
    "enable_x64",
    "set_platform",
    "set_rng_seed",
    "validation_enabled",
]
