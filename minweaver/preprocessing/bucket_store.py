#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Minimizer bucket staging.

K-mers are grouped by minimizer before compaction. Each bucket is an
append-only list of (oriented k-mer, count) records held by a StagingStore:

- MemoryStagingStore: plain dictionaries (default)
- DiskStagingStore: one "<kmer>,<count>" text file per bucket
- SpillingStagingStore: memory buffers flushed to disk past a record threshold

BucketStore routes k-mers into buckets and guarantees that every staging
artifact is purged when it is used as a context manager, whether the run
succeeds or not.

Author: MinWeaver Development Team
License: MIT
"""

import csv
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from ..errors import ConfigurationError, ParseError, StagingError
from ..utils.minimizer import get_minimizer, is_ambiguous
from ..utils.sequence_utils import reverse_complement

logger = logging.getLogger(__name__)

BucketId = Union[int, str]

# Reserved bucket for k-mers whose minimizer occurs more than once
OVERFLOW_BUCKET = "multiple"

STAGING_BACKENDS = ('memory', 'disk', 'spill')


# ============================================================================
# Staging stores
# ============================================================================

class StagingStore(ABC):
    """Append-only record storage keyed by bucket id."""

    @abstractmethod
    def append(self, bucket_id: BucketId, kmer: int, count: int):
        """Append one record to a bucket, creating it on first write."""

    @abstractmethod
    def records(self, bucket_id: BucketId) -> Iterator[Tuple[int, int]]:
        """Iterate the records of a bucket in insertion order."""

    @abstractmethod
    def exists(self, bucket_id: BucketId) -> bool:
        """Whether a bucket has been created."""

    @abstractmethod
    def remove(self, bucket_id: BucketId):
        """Destroy a bucket. Removing a missing bucket is a no-op."""

    @abstractmethod
    def bucket_ids(self) -> Set[BucketId]:
        """Ids of every bucket currently held."""

    def close(self):
        """Release any resource held by the store."""
        pass


class MemoryStagingStore(StagingStore):
    """Keep every bucket in memory."""

    def __init__(self):
        self._buckets: Dict[BucketId, List[Tuple[int, int]]] = defaultdict(list)

    def append(self, bucket_id: BucketId, kmer: int, count: int):
        self._buckets[bucket_id].append((kmer, count))

    def records(self, bucket_id: BucketId) -> Iterator[Tuple[int, int]]:
        if bucket_id not in self._buckets:
            raise StagingError(f"Bucket {bucket_id} does not exist")
        return iter(self._buckets[bucket_id])

    def exists(self, bucket_id: BucketId) -> bool:
        return bucket_id in self._buckets

    def remove(self, bucket_id: BucketId):
        self._buckets.pop(bucket_id, None)

    def bucket_ids(self) -> Set[BucketId]:
        return set(self._buckets)


class DiskStagingStore(StagingStore):
    """
    One text file per bucket, named "<prefix><bucket_id>".

    Records are "<decimal kmer>,<decimal count>" lines. When no prefix is
    given a private temporary directory is created and removed on close().
    """

    def __init__(self, prefix: Optional[Union[str, Path]] = None):
        self._owned_dir: Optional[Path] = None

        if prefix is None:
            self._owned_dir = Path(tempfile.mkdtemp(prefix="minweaver_staging_"))
            prefix = f"{self._owned_dir}/bucket_"

        self.prefix = str(prefix)
        self._created: Set[BucketId] = set()

    def path(self, bucket_id: BucketId) -> Path:
        """Staging file backing a bucket."""
        return Path(f"{self.prefix}{bucket_id}")

    def append(self, bucket_id: BucketId, kmer: int, count: int):
        self.append_many(bucket_id, [(kmer, count)])

    def append_many(self, bucket_id: BucketId, records: Iterable[Tuple[int, int]]):
        """Append several records with a single open of the bucket file."""
        path = self.path(bucket_id)
        # Files left over from an earlier run are overwritten on first write
        mode = 'a' if bucket_id in self._created else 'w'
        try:
            with open(path, mode, newline='') as f:
                csv.writer(f, lineterminator='\n').writerows(records)
        except OSError as e:
            raise StagingError(f"Cannot append to bucket file {path}: {e}") from e

        self._created.add(bucket_id)

    def records(self, bucket_id: BucketId) -> Iterator[Tuple[int, int]]:
        path = self.path(bucket_id)
        try:
            f = open(path, 'r', newline='')
        except OSError as e:
            raise StagingError(f"Cannot read bucket file {path}: {e}") from e

        with f:
            for line, row in enumerate(csv.reader(f), start=1):
                if len(row) != 2:
                    raise ParseError(
                        f"malformed staged record {row!r}", str(path), line
                    )
                try:
                    yield int(row[0]), int(row[1])
                except ValueError as e:
                    raise ParseError(
                        f"malformed staged record {row!r}", str(path), line
                    ) from e

    def exists(self, bucket_id: BucketId) -> bool:
        return bucket_id in self._created

    def remove(self, bucket_id: BucketId):
        path = self.path(bucket_id)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StagingError(f"Cannot remove bucket file {path}: {e}") from e

        self._created.discard(bucket_id)

    def bucket_ids(self) -> Set[BucketId]:
        return set(self._created)

    def close(self):
        if self._owned_dir is not None:
            shutil.rmtree(self._owned_dir, ignore_errors=True)
            self._owned_dir = None


class SpillingStagingStore(StagingStore):
    """
    Buffer records in memory and spill every buffer to disk once more than
    spill_threshold records are held.
    """

    def __init__(self, prefix: Optional[Union[str, Path]] = None,
                 spill_threshold: int = 1_000_000):
        if spill_threshold < 1:
            raise ConfigurationError(
                f"spill_threshold must be >= 1, got {spill_threshold}"
            )

        self.spill_threshold = spill_threshold
        self._memory = MemoryStagingStore()
        self._disk = DiskStagingStore(prefix)
        self._buffered = 0
        self.spills = 0

    def append(self, bucket_id: BucketId, kmer: int, count: int):
        self._memory.append(bucket_id, kmer, count)
        self._buffered += 1

        if self._buffered >= self.spill_threshold:
            self.spill()

    def spill(self):
        """Move every buffered record to disk."""
        for bucket_id in self._memory.bucket_ids():
            self._disk.append_many(bucket_id, self._memory.records(bucket_id))
            self._memory.remove(bucket_id)

        logger.debug(f"Spilled {self._buffered} staged records to disk")
        self._buffered = 0
        self.spills += 1

    def records(self, bucket_id: BucketId) -> Iterator[Tuple[int, int]]:
        if not self.exists(bucket_id):
            raise StagingError(f"Bucket {bucket_id} does not exist")

        if self._disk.exists(bucket_id):
            yield from self._disk.records(bucket_id)
        if self._memory.exists(bucket_id):
            yield from self._memory.records(bucket_id)

    def exists(self, bucket_id: BucketId) -> bool:
        return self._memory.exists(bucket_id) or self._disk.exists(bucket_id)

    def remove(self, bucket_id: BucketId):
        if self._memory.exists(bucket_id):
            self._buffered -= sum(1 for _ in self._memory.records(bucket_id))
            self._memory.remove(bucket_id)
        self._disk.remove(bucket_id)

    def bucket_ids(self) -> Set[BucketId]:
        return self._memory.bucket_ids() | self._disk.bucket_ids()

    def close(self):
        self._disk.close()


def create_staging_store(backend: str = 'memory',
                         prefix: Optional[Union[str, Path]] = None,
                         spill_threshold: int = 1_000_000) -> StagingStore:
    """
    Build a staging store.

    Args:
        backend: 'memory', 'disk' or 'spill'
        prefix: Path prefix for bucket files (disk-backed stores only)
        spill_threshold: Buffered records before spilling ('spill' only)
    """
    if backend == 'memory':
        return MemoryStagingStore()
    if backend == 'disk':
        return DiskStagingStore(prefix)
    if backend == 'spill':
        return SpillingStagingStore(prefix, spill_threshold)

    raise ConfigurationError(
        f"Unknown staging backend {backend!r} (expected one of {', '.join(STAGING_BACKENDS)})"
    )


# ============================================================================
# Bucket store
# ============================================================================

class BucketStore:
    """
    Group k-mers by minimizer.

    Each k-mer is stored oriented so that its minimizer reads in canonical
    orientation. K-mers whose minimizer occurs at several windows go,
    un-reoriented, to the OVERFLOW_BUCKET.

    Example:
        >>> with BucketStore(k=11, m=6) as store:
        ...     for kmer, count in pairs:
        ...         store.stage(kmer, count)
        ...     for bucket_id in sorted(store.enumerate()):
        ...         bucket = store.load(bucket_id)
    """

    def __init__(self, k: int, m: int, store: Optional[StagingStore] = None):
        self.k = k
        self.m = m
        self.store = store if store is not None else MemoryStagingStore()
        self._minimizers: Set[int] = set()
        self.staged = 0
        self.overflow = 0

    def stage(self, kmer: int, count: int) -> BucketId:
        """
        Route one k-mer into its bucket.

        Returns:
            The minimizer the k-mer was filed under, or OVERFLOW_BUCKET
        """
        minimizer, _, forward = get_minimizer(kmer, self.k, self.m)
        oriented = kmer if forward else reverse_complement(kmer, self.k)

        self.staged += 1

        if is_ambiguous(oriented, minimizer, self.k, self.m):
            self.store.append(OVERFLOW_BUCKET, kmer, count)
            self.overflow += 1
            return OVERFLOW_BUCKET

        self.store.append(minimizer, oriented, count)
        self._minimizers.add(minimizer)
        return minimizer

    def load(self, bucket_id: BucketId) -> Dict[int, int]:
        """
        Read a bucket back as {kmer: count}.

        A k-mer staged twice keeps its last count.
        """
        return dict(self.store.records(bucket_id))

    def enumerate(self) -> Set[int]:
        """Minimizers of every bucket created by stage() (overflow excluded)."""
        return set(self._minimizers)

    @property
    def has_overflow(self) -> bool:
        return self.store.exists(OVERFLOW_BUCKET)

    def purge(self, bucket_id: BucketId):
        """Destroy the staging artifact of one bucket."""
        self.store.remove(bucket_id)
        logger.debug(f"Purged bucket {bucket_id}")

    def purge_all(self):
        """Destroy every remaining staging artifact."""
        remaining = self.store.bucket_ids()
        for bucket_id in remaining:
            self.store.remove(bucket_id)

        if remaining:
            logger.debug(f"Purged {len(remaining)} remaining buckets")

    def close(self):
        try:
            self.purge_all()
        finally:
            self.store.close()

    def __enter__(self) -> "BucketStore":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


__all__ = [
    'BucketId',
    'OVERFLOW_BUCKET',
    'STAGING_BACKENDS',
    'StagingStore',
    'MemoryStagingStore',
    'DiskStagingStore',
    'SpillingStagingStore',
    'create_staging_store',
    'BucketStore',
]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
