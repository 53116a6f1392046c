#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Minimizer selection for packed k-mers.

The minimizer of a k-mer is the canonical m-window with the lowest
MurmurHash3 (x64, 128-bit, seed 0) score. Windows are scanned from the 3'
end toward the 5' end and a candidate only replaces the current best on a
strict improvement, so ties keep the window closest to the 3' end.

Author: MinWeaver Development Team
License: MIT
"""

from typing import NamedTuple

import mmh3

from .sequence_utils import canonical


class Minimizer(NamedTuple):
    """Minimizer of a k-mer."""
    value: int  # Canonical m-mer
    offset: int  # 0-based position from the 5' end of the k-mer
    is_forward: bool  # Winning window already in canonical orientation


def window_hash(window: int) -> int:
    """Score a canonical window: 128-bit hash of its 16-byte big-endian form."""
    return mmh3.hash128(window.to_bytes(16, 'big'), seed=0, x64arch=True, signed=False)


def get_minimizer(kmer: int, k: int, m: int) -> Minimizer:
    """
    Find the minimizer of a k-mer.

    Args:
        kmer: Packed k-mer
        k: K-mer size
        m: Minimizer size (m < k)

    Returns:
        Minimizer(value, offset, is_forward)
    """
    nb_windows = k - m + 1
    mask = (1 << (2 * m)) - 1

    best_score = None
    minimizer = 0
    offset = 0
    forward = True

    for i in range(nb_windows):
        window, local_forward = canonical(kmer & mask, m)
        score = window_hash(window)

        if best_score is None or score < best_score:
            best_score = score
            minimizer = window
            offset = nb_windows - i - 1
            forward = local_forward

        kmer >>= 2

    return Minimizer(minimizer, offset, forward)


def is_ambiguous(kmer: int, minimizer: int, k: int, m: int) -> bool:
    """
    Return True if the minimizer occurs at more than one window of the k-mer.

    Compaction locates the minimizer by exact substring search, so such
    k-mers cannot be chained and are routed to the overflow bucket.
    """
    mask = (1 << (2 * m)) - 1
    hits = 0

    for _ in range(k - m + 1):
        if canonical(kmer & mask, m)[0] == minimizer:
            hits += 1
            if hits > 1:
                return True
        kmer >>= 2

    return False


__all__ = ['Minimizer', 'window_hash', 'get_minimizer', 'is_ambiguous']

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
