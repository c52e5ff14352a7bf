# Copyright Contributors to the Pyro project.
# SPDX-License-Identifier: Apache-2.0

import os
import sys

from setuptools import find_packages, setup

PROJECT_PATH = os.path.dirname(os.path.abspath(__file__))
_jax_version_constraints = ">=0.4.25"
_jaxlib_version_constraints = ">=0.4.25"

# Find version
for line in open(os.path.join(PROJECT_PATH, "affinejax", "version.py")):
    if line.startswith("__version__ = "):
        version = line.strip().split()[2][1:-1]

# READ README.md for long description on PyPi.
try:
    long_description = open("README.md", encoding="utf-8").read()
except Exception as e:
    sys.stderr.write("Failed to read README.md:\n  {}\n".format(e))
    sys.stderr.flush()
    long_description = ""

setup(
    name="affinejax",
    version=version,
    description="Affine reparameterization of probability measures in JAX",
    packages=find_packages(include=["affinejax", "affinejax.*"]),
    install_requires=[
        f"jax{_jax_version_constraints}",
        f"jaxlib{_jaxlib_version_constraints}",
        "numpy",
    ],
    extras_require={
        "test": [
            "ruff>=0.1.8",
            "pytest>=4.1",
        ],
        "cpu": f"jax[cpu]{_jax_version_constraints}",
        "tpu": f"jax[tpu]{_jax_version_constraints}",
        "cuda": f"jax[cuda]{_jax_version_constraints}",
    },
    python_requires=">=3.9",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords="probabilistic affine reparameterization bayesian statistics",
    license="Apache License 2.0",
    classifiers=[
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS :: MacOS X",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
