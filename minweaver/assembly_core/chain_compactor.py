#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Minimizer bucket compaction.

Within one bucket every k-mer carries the same minimizer, so the implicit
overlap graph (nodes = k-mers, edges = exact (k-1)-base overlaps) is a
union of simple paths. Each path is walked greedily from an unvisited seed:

1. Walk predecessors (prefix a base, drop the last one) until none is left
2. Walk successors (drop the first base, append one) until none is left
3. Fuse left flank + seed + right flank into one superstring
4. Locate the minimizer in the superstring and splice it out

Neighbours are probed in A, C, T, G order. A k-mer with more than one
unvisited neighbour is a branch point: the first probe wins and the other
branch is picked up later as its own seed. Branch points are counted, and
are fatal with strict_branching.

Two k-mers of a bucket may hold the minimizer at different places (one at
its 5' end, its neighbour at its 3' end). Walks never step onto a neighbour
whose outer m-window is the minimizer, so every superstring holds it exactly
once; that neighbour is emitted later from its own seed.

Author: MinWeaver Development Team
License: MIT
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import logging

from ..errors import AmbiguousChainError, ConsistencyError
from ..utils.sequence_utils import bits_to_nuc, decode

logger = logging.getLogger(__name__)


# ============================================================================
# Data Structures
# ============================================================================

@dataclass
class CompactedRecord:
    """
    One superstring with its minimizer excised.

    counts holds one byte per k-mer of the superstring, 5' to 3'.
    """
    offset: int  # Minimizer position in the un-spliced superstring
    sequence: bytes  # Superstring without the minimizer
    counts: bytes

    @property
    def nb_kmers(self) -> int:
        return len(self.counts)


@dataclass
class BucketCompaction:
    """All records produced from one minimizer bucket."""
    minimizer: int
    records: List[CompactedRecord] = field(default_factory=list)
    nb_kmers: int = 0
    branch_points: int = 0

    @property
    def offsets(self) -> List[int]:
        return [record.offset for record in self.records]

    @property
    def sequences(self) -> List[bytes]:
        return [record.sequence for record in self.records]

    @property
    def counts(self) -> List[bytes]:
        return [record.counts for record in self.records]


@dataclass
class CompactionStats:
    """Running totals across compacted buckets."""
    buckets: int = 0
    records: int = 0
    kmers: int = 0
    branch_points: int = 0

    def add(self, compaction: BucketCompaction):
        self.buckets += 1
        self.records += len(compaction.records)
        self.kmers += compaction.nb_kmers
        self.branch_points += compaction.branch_points


# ============================================================================
# Chain walking
# ============================================================================

def _predecessors(kmer: int, k: int, bucket: Dict[int, int],
                  visited: Set[int]) -> List[Tuple[int, int]]:
    """Unvisited predecessors present in the bucket, in probe order."""
    sub = kmer >> 2
    shift = (k - 1) * 2
    found = []

    for code in range(4):
        pred = (code << shift) | sub
        if pred in bucket and pred not in visited:
            found.append((pred, code))

    return found


def _successors(kmer: int, k: int, bucket: Dict[int, int],
                visited: Set[int]) -> List[Tuple[int, int]]:
    """Unvisited successors present in the bucket, in probe order."""
    mask = (1 << ((k - 1) * 2)) - 1
    sub = (kmer & mask) << 2
    found = []

    for code in range(4):
        succ = sub | code
        if succ in bucket and succ not in visited:
            found.append((succ, code))

    return found


def _count(bucket: Dict[int, int], kmer: int) -> int:
    count = bucket.get(kmer)
    if count is None:
        raise ConsistencyError(f"k-mer {kmer} missing from its bucket")
    if not 0 <= count <= 255:
        raise ConsistencyError(f"count {count} of k-mer {kmer} does not fit in one byte")
    return count


def _locate(fused: bytes, minimizer_seq: bytes, minimizer: int) -> int:
    """Position of the single occurrence of the minimizer in a superstring."""
    offset = fused.find(minimizer_seq)
    if offset < 0:
        raise ConsistencyError(
            f"minimizer {minimizer_seq.decode()} ({minimizer}) not found in "
            f"superstring {fused.decode()}"
        )
    if fused.find(minimizer_seq, offset + 1) >= 0:
        raise ConsistencyError(
            f"minimizer {minimizer_seq.decode()} ({minimizer}) occurs more than once "
            f"in superstring {fused.decode()}"
        )
    return offset


def compact_bucket(bucket: Dict[int, int], minimizer: int, k: int, m: int,
                   strict_branching: bool = False) -> BucketCompaction:
    """
    Chain the k-mers of one bucket into minimizer-spliced superstrings.

    Args:
        bucket: {oriented kmer: count}
        minimizer: Minimizer shared by every k-mer of the bucket
        k: K-mer size
        m: Minimizer size
        strict_branching: Raise AmbiguousChainError on branch points

    Returns:
        BucketCompaction with one record per superstring

    Raises:
        ConsistencyError: A walked k-mer is missing, or the minimizer is not
            found exactly once in a superstring
    """
    result = BucketCompaction(minimizer=minimizer)
    minimizer_seq = decode(minimizer, m).encode('ascii')
    visited: Set[int] = set()

    outer_shift = 2 * (k - m)
    window_mask = (1 << (2 * m)) - 1

    # A neighbour whose outer window is the minimizer would put a second copy
    # of it in the superstring, so it is left to start a record of its own
    def left_neighbours(current: int) -> List[Tuple[int, int]]:
        return [
            (pred, code) for pred, code in _predecessors(current, k, bucket, visited)
            if pred >> outer_shift != minimizer
        ]

    def right_neighbours(current: int) -> List[Tuple[int, int]]:
        return [
            (succ, code) for succ, code in _successors(current, k, bucket, visited)
            if succ & window_mask != minimizer
        ]

    def step(candidates: List[Tuple[int, int]], current: int,
             direction: str) -> Optional[Tuple[int, int]]:
        if not candidates:
            return None
        if len(candidates) > 1:
            result.branch_points += 1
            message = (
                f"k-mer {decode(current, k)} has {len(candidates)} {direction} "
                f"in bucket {minimizer_seq.decode()}"
            )
            if strict_branching:
                raise AmbiguousChainError(message)
            logger.warning(f"Branch point: {message}, keeping the first")
        return candidates[0]

    for seed in sorted(bucket):
        if seed in visited:
            continue
        visited.add(seed)

        left_bases = bytearray()
        left_counts = bytearray()
        current = seed
        while True:
            nxt = step(left_neighbours(current), current, "predecessors")
            if nxt is None:
                break
            current, code = nxt
            visited.add(current)
            left_bases += bits_to_nuc(code).encode('ascii')
            left_counts.append(_count(bucket, current))

        left_bases.reverse()
        left_counts.reverse()

        fused = left_bases + decode(seed, k).encode('ascii')
        counts = left_counts
        counts.append(_count(bucket, seed))

        current = seed
        while True:
            nxt = step(right_neighbours(current), current, "successors")
            if nxt is None:
                break
            current, code = nxt
            visited.add(current)
            fused += bits_to_nuc(code).encode('ascii')
            counts.append(_count(bucket, current))

        offset = _locate(bytes(fused), minimizer_seq, minimizer)
        spliced = bytes(fused[:offset] + fused[offset + m:])

        result.records.append(CompactedRecord(offset, spliced, bytes(counts)))
        result.nb_kmers += len(counts)

    return result


def overflow_records(bucket: Dict[int, int], k: int) -> Tuple[List[bytes], List[bytes]]:
    """
    Emit overflow k-mers individually, uncompacted.

    Returns:
        (sequences, counts): one full k-mer and a one-byte count per entry
    """
    sequences = []
    counts = []

    for kmer in sorted(bucket):
        sequences.append(decode(kmer, k).encode('ascii'))
        counts.append(bytes([_count(bucket, kmer)]))

    return sequences, counts


# ============================================================================
# Compactor
# ============================================================================

class ChainCompactor:
    """
    Compact minimizer buckets and keep running statistics.

    Example:
        >>> compactor = ChainCompactor(k=11, m=6)
        >>> compaction = compactor.compact(store.load(minimizer), minimizer)
        >>> compactor.stats.records
    """

    def __init__(self, k: int, m: int, strict_branching: bool = False):
        self.k = k
        self.m = m
        self.strict_branching = strict_branching
        self.stats = CompactionStats()

    def compact(self, bucket: Dict[int, int], minimizer: int) -> BucketCompaction:
        """Compact one bucket and record its statistics."""
        compaction = compact_bucket(
            bucket, minimizer, self.k, self.m, self.strict_branching
        )
        self.record(compaction)
        return compaction

    def record(self, compaction: BucketCompaction):
        """Account for a bucket compacted elsewhere (e.g. in a worker process)."""
        self.stats.add(compaction)
        logger.debug(
            f"Bucket {decode(compaction.minimizer, self.m)}: "
            f"{compaction.nb_kmers} k-mers -> {len(compaction.records)} superstrings"
        )


__all__ = [
    'CompactedRecord',
    'BucketCompaction',
    'CompactionStats',
    'compact_bucket',
    'overflow_records',
    'ChainCompactor',
]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
