#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Package initialization and version metadata.

Author: MinWeaver Development Team
License: MIT
"""

from .version import __version__

__all__ = ["__version__"]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
