#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
MinWeaver: minimizer compaction of k-mer counts

Converts a table of (k-mer, count) pairs into a KFF file in which k-mers
sharing a minimizer are chained into superstrings.

Version: 0.1
License: MIT
"""

from setuptools import setup, find_packages
import os

# Read version from package
version = {}
with open(os.path.join(os.path.dirname(__file__), "minweaver", "version.py")) as f:
    exec(f.read(), version)

# Read long description from README
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

# Read requirements from requirements.txt
def read_requirements(filename):
    """Read requirements from file."""
    filepath = os.path.join(os.path.dirname(__file__), filename)
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]

setup(
    name="minweaver",
    version=version["__version__"],
    author="MinWeaver Development Team",
    description="Minimizer compaction of k-mer counts into KFF files",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": read_requirements("requirements-dev.txt"),
    },
    entry_points={
        "console_scripts": [
            "minweaver=minweaver.cli:main",
        ],
    },
    zip_safe=False,
    keywords="kmer minimizer kff compaction bioinformatics",
)
