"""
MinWeaver v0.1.0

Preprocessing: k-mer count table reading and minimizer bucket staging.

Author: MinWeaver Development Team
License: MIT
"""

from .kmer_reader import MAX_COUNT, parse_count, parse_rows, read_kmer_counts
from .bucket_store import (
    OVERFLOW_BUCKET,
    BucketStore,
    StagingStore,
    MemoryStagingStore,
    DiskStagingStore,
    SpillingStagingStore,
    create_staging_store,
)

__all__ = [
    "MAX_COUNT",
    "parse_count",
    "parse_rows",
    "read_kmer_counts",
    "OVERFLOW_BUCKET",
    "BucketStore",
    "StagingStore",
    "MemoryStagingStore",
    "DiskStagingStore",
    "SpillingStagingStore",
    "create_staging_store",
]
