#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Pytest configuration and shared fixtures.

Author: MinWeaver Development Team
License: MIT
"""

import random
import shutil
import tempfile
from pathlib import Path

import pytest

from minweaver.config.schema import default_config
from minweaver.utils.sequence_utils import canonical, encode


@pytest.fixture
def temp_output_dir():
    """Create temporary output directory for tests."""
    temp_dir = tempfile.mkdtemp(prefix="minweaver_test_")
    yield Path(temp_dir)
    # Cleanup after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def reference_factory():
    """
    Build random references in which every canonical m-mer occurs once.

    Sliding a k-window over such a reference gives buckets that are single
    linear paths with one minimizer occurrence each.
    """
    def build(length: int, m: int, seed: int = 0) -> str:
        rng = random.Random(seed)
        while True:
            sequence = ''.join(rng.choice('ACGT') for _ in range(length))
            windows = [
                canonical(encode(sequence[i:i + m]), m)[0]
                for i in range(length - m + 1)
            ]
            if len(set(windows)) == len(windows):
                return sequence

    return build


@pytest.fixture
def config_factory():
    """Default configuration with k and m filled in."""
    def build(k: int = 11, m: int = 6, **sections):
        config = default_config()
        config['kmers']['k'] = k
        config['kmers']['m'] = m
        for section, values in sections.items():
            config[section].update(values)
        return config

    return build

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
