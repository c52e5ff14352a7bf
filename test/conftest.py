# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

import os

from jax import config

from affinejax.util import set_rng_seed

config.update("jax_platform_name", "cpu")  # noqa: E702
# round-trip checks are done at float64 precision unless explicitly disabled
config.update("jax_enable_x64", os.environ.get("JAX_ENABLE_X64", "1") != "0")


def pytest_runtest_setup(item):
    set_rng_seed(0)
