#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Conversion pipeline: k-mer count table -> minimizer-compacted KFF file.

Steps:
1. Stage every (k-mer, count) pair into its minimizer bucket
2. Compact each bucket into minimizer-spliced superstrings
3. Write one minimizer section per bucket, then one raw section for the
   overflow bucket
4. Purge staging buckets (each one as soon as it is written; anything left
   is removed on every exit path)

Author: MinWeaver Development Team
License: MIT
"""

import logging
from collections import deque
from concurrent.futures import Future, ProcessPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Iterator, Tuple, Union

from ..assembly_core.chain_compactor import (
    BucketCompaction,
    ChainCompactor,
    compact_bucket,
    overflow_records,
)
from ..config.schema import check_config
from ..io_utils.kff import KffWriter
from ..preprocessing.bucket_store import OVERFLOW_BUCKET, BucketStore, create_staging_store
from ..preprocessing.kmer_reader import MAX_COUNT, read_kmer_counts
from .sequence_utils import decode

logger = logging.getLogger(__name__)

DATA_SIZE = 1  # One count byte per k-mer


@dataclass
class ConversionStats:
    """Summary of one conversion run."""
    rows: int = 0
    buckets: int = 0
    superstrings: int = 0
    compacted_kmers: int = 0
    overflow_kmers: int = 0
    branch_points: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ConversionPipeline:
    """
    Convert k-mer counts into a minimizer-compacted KFF file.

    Example:
        >>> config = default_config()
        >>> config['kmers'].update(k=11, m=6)
        >>> stats = ConversionPipeline(config).run("counts.csv", "counts.kff")
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the pipeline.

        Args:
            config: Configuration dictionary (see config.schema)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = check_config(config)

        self.k = config['kmers']['k']
        self.m = config['kmers']['m']
        self.delimiter = config['input']['delimiter']
        self.workers = config['compaction']['workers']
        self.strict_branching = config['compaction']['strict_branching']

    def _create_bucket_store(self) -> BucketStore:
        staging = self.config['staging']
        store = create_staging_store(
            staging['backend'], staging['prefix'], staging['spill_threshold']
        )
        return BucketStore(self.k, self.m, store)

    def run(self, input_path: Union[str, Path],
            output_path: Union[str, Path]) -> ConversionStats:
        """
        Convert a delimited k-mer count table.

        Args:
            input_path: Headerless table, sequence then count
            output_path: KFF file to create

        Returns:
            ConversionStats
        """
        logger.info(f"Converting {input_path} -> {output_path} (k={self.k}, m={self.m})")
        pairs = read_kmer_counts(input_path, self.k, self.delimiter)
        return self.convert(pairs, output_path)

    def convert(self, pairs: Iterable[Tuple[int, int]],
                output_path: Union[str, Path]) -> ConversionStats:
        """
        Convert already encoded (kmer, count) pairs.

        Args:
            pairs: Packed k-mers and their counts
            output_path: KFF file to create

        Returns:
            ConversionStats
        """
        stats = ConversionStats()
        compactor = ChainCompactor(self.k, self.m, self.strict_branching)

        with self._create_bucket_store() as buckets:
            logger.info("Start of bucket creation")
            for kmer, count in pairs:
                buckets.stage(kmer, count)
            stats.rows = buckets.staged
            logger.info(
                f"End of bucket creation: {buckets.staged} k-mers in "
                f"{len(buckets.enumerate())} buckets, {buckets.overflow} ambiguous"
            )

            with KffWriter(output_path) as writer:
                writer.write_variables({
                    'k': self.k,
                    'm': self.m,
                    'max': MAX_COUNT,
                    'data_size': DATA_SIZE,
                })

                for compaction in self._compact_buckets(buckets, compactor):
                    writer.write_minimizer_section(
                        decode(compaction.minimizer, self.m).encode('ascii'),
                        compaction.offsets,
                        compaction.sequences,
                        compaction.counts,
                    )
                    buckets.purge(compaction.minimizer)

                if buckets.has_overflow:
                    logger.info("Write bucket of multiple minimizer")
                    sequences, datas = overflow_records(
                        buckets.load(OVERFLOW_BUCKET), self.k
                    )
                    writer.write_raw_section(sequences, datas)
                    buckets.purge(OVERFLOW_BUCKET)
                    stats.overflow_kmers = len(sequences)

        stats.buckets = compactor.stats.buckets
        stats.superstrings = compactor.stats.records
        stats.compacted_kmers = compactor.stats.kmers
        stats.branch_points = compactor.stats.branch_points

        logger.info(
            f"Wrote {stats.superstrings} superstrings from {stats.buckets} buckets "
            f"and {stats.overflow_kmers} overflow k-mers to {output_path}"
        )
        if stats.branch_points:
            logger.warning(f"{stats.branch_points} branch points resolved by probe order")

        return stats

    def _compact_buckets(self, buckets: BucketStore,
                         compactor: ChainCompactor) -> Iterator[BucketCompaction]:
        """Compact every bucket, yielding results in ascending minimizer order."""
        minimizers = sorted(buckets.enumerate())

        if self.workers <= 1:
            for minimizer in minimizers:
                logger.debug(f"Compress bucket {minimizer}")
                yield compactor.compact(buckets.load(minimizer), minimizer)
            return

        logger.info(f"Compacting {len(minimizers)} buckets on {self.workers} workers")
        pending: Deque[Future] = deque()

        # At most 2 buckets per worker are loaded ahead of the writer
        with ProcessPoolExecutor(max_workers=self.workers) as executor:
            for minimizer in minimizers:
                pending.append(executor.submit(
                    compact_bucket, buckets.load(minimizer), minimizer,
                    self.k, self.m, self.strict_branching
                ))
                if len(pending) >= 2 * self.workers:
                    yield self._collect(pending.popleft(), compactor)

            while pending:
                yield self._collect(pending.popleft(), compactor)

    @staticmethod
    def _collect(future: Future, compactor: ChainCompactor) -> BucketCompaction:
        compaction = future.result()
        compactor.record(compaction)
        return compaction


__all__ = ['ConversionStats', 'ConversionPipeline']

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
