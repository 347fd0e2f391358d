import os
import sys

from setuptools import find_packages, setup

# Don't import freeplay_exporter here, since deps may not be installed
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "freeplay_exporter"))
from version import VERSION  # noqa: E402

long_description = """
OpenTelemetry span exporter that records Vercel AI SDK text generations
as Freeplay completions. Built for short-lived hosts such as serverless
functions: every delivery is tracked and can be flushed before exit.

This package requires Python 3.9 or higher.
"""

install_requires = [
    "requests>=2.7,<3.0",
    "opentelemetry-api>=1.20.0",
    "opentelemetry-sdk>=1.20.0",
]

tests_require = [
    "mock>=2.0.0",
    "parameterized>=0.8.1",
    "pytest",
]

setup(
    name="freeplay-exporter",
    version=VERSION,
    url="https://github.com/freeplayai/freeplay-exporter-python",
    author="Freeplay",
    maintainer="Freeplay",
    license="MIT License",
    description="Export Vercel AI SDK OpenTelemetry spans to Freeplay.",
    long_description=long_description,
    packages=find_packages(exclude=["freeplay_exporter.test*"]),
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={"test": tests_require},
)
