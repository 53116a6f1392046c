#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Exception hierarchy for MinWeaver.

Every failure raised by the conversion pipeline derives from
MinWeaverError so the CLI can report it uniformly. No error is retried;
any of these aborts the whole conversion.

Author: MinWeaver Development Team
License: MIT
"""

from typing import Optional


class MinWeaverError(Exception):
    """Base class for all MinWeaver errors."""
    pass


class ConfigurationError(MinWeaverError):
    """Raised when k, m or another run parameter is invalid."""
    pass


class StagingError(MinWeaverError):
    """Raised when a staging bucket cannot be created, appended or read."""
    pass


class ParseError(MinWeaverError):
    """
    Raised on malformed input rows or staged records.

    Args:
        message: Description of the problem
        source: File (or bucket) the record came from, if known
        line: 1-based line number, if known
    """

    def __init__(self, message: str, source: Optional[str] = None,
                 line: Optional[int] = None):
        self.source = source
        self.line = line

        location = ""
        if source is not None:
            location = f"{source}"
            if line is not None:
                location += f":{line}"
            location += ": "

        super().__init__(f"{location}{message}")


class SequenceLengthError(ParseError):
    """Raised when a sequence does not fit in a 128-bit k-mer word."""
    pass


class SequenceEncodingError(ParseError):
    """Raised when a sequence contains non-ASCII characters."""
    pass


class ConsistencyError(MinWeaverError):
    """
    Internal invariant failure during compaction.

    Signals a bug or a broken routing assumption (e.g. an ambiguous
    minimizer that escaped the overflow bucket), never bad user input.
    """

    def __str__(self) -> str:
        return f"internal invariant violated: {super().__str__()}"


class AmbiguousChainError(ConsistencyError):
    """Raised in strict mode when a k-mer has more than one live neighbour."""
    pass


class KffFormatError(MinWeaverError):
    """Raised on KFF writer misuse or a malformed KFF file."""
    pass


__all__ = [
    'MinWeaverError',
    'ConfigurationError',
    'StagingError',
    'ParseError',
    'SequenceLengthError',
    'SequenceEncodingError',
    'ConsistencyError',
    'AmbiguousChainError',
    'KffFormatError',
]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
