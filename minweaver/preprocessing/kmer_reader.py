#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

K-mer count table reader.

Reads headerless delimited text where column 0 is a nucleotide string and
column 1 a decimal count in [0, 255], and yields packed k-mers.

Author: MinWeaver Development Team
License: MIT
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

from ..errors import ParseError
from ..utils.sequence_utils import encode

logger = logging.getLogger(__name__)

MAX_COUNT = 255


def parse_count(field: str, source: Optional[str] = None,
                line: Optional[int] = None) -> int:
    """Parse a count field, rejecting anything outside [0, 255]."""
    try:
        count = int(field.strip())
    except ValueError as e:
        raise ParseError(f"invalid count {field!r}", source, line) from e

    if not 0 <= count <= MAX_COUNT:
        raise ParseError(
            f"count {count} outside [0, {MAX_COUNT}]", source, line
        )

    return count


def parse_rows(rows: Iterable[list], k: int,
               source: Optional[str] = None) -> Iterator[Tuple[int, int]]:
    """
    Convert parsed table rows into (kmer, count) pairs.

    Args:
        rows: Iterable of column lists
        k: Expected k-mer size
        source: Name used in error messages

    Yields:
        (packed k-mer, count)
    """
    for line, row in enumerate(rows, start=1):
        if not row:
            continue

        if len(row) < 2:
            raise ParseError(f"expected 2 columns, got {len(row)}", source, line)

        sequence = row[0].strip()
        if len(sequence) != k:
            raise ParseError(
                f"sequence {sequence!r} has {len(sequence)} bases, expected k={k}",
                source, line
            )

        try:
            kmer = encode(sequence)
        except ParseError as e:
            raise type(e)(str(e), source, line) from e

        yield kmer, parse_count(row[1], source, line)


def read_kmer_counts(path: Union[str, Path], k: int,
                     delimiter: str = ',') -> Iterator[Tuple[int, int]]:
    """
    Stream (kmer, count) pairs from a k-mer count table.

    Args:
        path: Input table
        k: K-mer size
        delimiter: Single-character column delimiter

    Yields:
        (packed k-mer, count)
    """
    path = Path(path)
    logger.debug(f"Reading k-mer counts from {path} (delimiter={delimiter!r})")

    # Non-ASCII bytes are kept as surrogates so they fail on their own row
    with open(path, 'r', encoding='ascii', errors='surrogateescape', newline='') as f:
        reader = csv.reader(f, delimiter=delimiter)
        try:
            yield from parse_rows(reader, k, source=str(path))
        except csv.Error as e:
            raise ParseError(f"malformed row: {e}", str(path), reader.line_num) from e


__all__ = ['MAX_COUNT', 'parse_count', 'parse_rows', 'read_kmer_counts']

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
