"""
MinWeaver v0.1.0

Assembly core: chaining of minimizer buckets into superstrings.

Author: MinWeaver Development Team
License: MIT
"""

from .chain_compactor import (
    CompactedRecord,
    BucketCompaction,
    CompactionStats,
    ChainCompactor,
    compact_bucket,
    overflow_records,
)

__all__ = [
    "CompactedRecord",
    "BucketCompaction",
    "CompactionStats",
    "ChainCompactor",
    "compact_bucket",
    "overflow_records",
]
