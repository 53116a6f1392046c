#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

KFF-style binary container: section writer and reader.

Layout (all integers big-endian):

    header    "KFF" | u8 major | u8 minor | u8 encoding | u8 unique
              | u8 canonical | u32 free_size | free bytes
    'v'       u64 nb_vars | (name NUL | u64 value) * nb_vars
    'r'       u64 nb_blocks | blocks
              block: nb_kmers | 2-bit sequence | data
    'm'       2-bit minimizer | u64 nb_blocks | blocks
              block: nb_kmers | mini_pos | 2-bit sequence (minimizer
              excised) | data
    footer    "KFF"

nb_kmers is stored on as many bytes as the `max` variable needs, mini_pos
on as many as `k + max - 1` needs. A packed sequence of n nucleotides
takes ceil(n / 4) bytes, padded with zero bits on the left. The encoding
byte gives the 2-bit code of A, C, G and T, two bits each, high to low.

Variables k, m, max and data_size must be written before any sequence
section.

Author: MinWeaver Development Team
License: MIT
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ..errors import KffFormatError

logger = logging.getLogger(__name__)

MAGIC = b"KFF"
VERSION = (1, 0)
DEFAULT_ENCODING = 0b00011011  # A=0, C=1, G=2, T=3

SECTION_VARIABLES = b"v"
SECTION_RAW = b"r"
SECTION_MINIMIZER = b"m"

REQUIRED_VARIABLES = ('k', 'max', 'data_size')


def _int_size(value: int) -> int:
    """Bytes needed to store integers up to value."""
    return max(1, (value.bit_length() + 7) // 8)


def _packed_size(nb_nucleotides: int) -> int:
    return (2 * nb_nucleotides + 7) // 8


def _encoding_table(encoding: int) -> Dict[int, int]:
    codes = [(encoding >> shift) & 0b11 for shift in (6, 4, 2, 0)]
    if len(set(codes)) != 4:
        raise KffFormatError(f"Encoding {encoding:#010b} does not map 4 distinct codes")

    table = {}
    for nuc, code in zip(b"ACGT", codes):
        table[nuc] = code
        table[nuc + 32] = code  # lowercase
    return table


# ============================================================================
# Writer
# ============================================================================

class KffWriter:
    """
    Write a KFF-style file section by section.

    Example:
        >>> with KffWriter("out.kff") as writer:
        ...     writer.write_variables({'k': 11, 'm': 6, 'max': 255, 'data_size': 1})
        ...     writer.write_minimizer_section(b"ACGTAC", offsets, sequences, counts)
    """

    def __init__(self, output: Union[str, Path, BinaryIO],
                 encoding: int = DEFAULT_ENCODING,
                 unique: bool = True, canonical: bool = True,
                 free_block: bytes = b""):
        self._nuc_to_code = _encoding_table(encoding)
        self.encoding = encoding
        self.variables: Dict[str, int] = {}
        self.sections_written = 0

        if isinstance(output, (str, Path)):
            self.path: Optional[Path] = Path(output)
            self._handle: BinaryIO = open(self.path, 'wb')
            self._owns_handle = True
        else:
            self.path = None
            self._handle = output
            self._owns_handle = False

        self._closed = False
        self._write_header(unique, canonical, free_block)

    def _write_header(self, unique: bool, canonical: bool, free_block: bytes):
        self._handle.write(MAGIC)
        self._handle.write(struct.pack(
            '>BBBBBI', VERSION[0], VERSION[1], self.encoding,
            int(unique), int(canonical), len(free_block)
        ))
        self._handle.write(free_block)

    def pack(self, sequence: bytes) -> bytes:
        """2-bit pack a nucleotide sequence with the file encoding."""
        value = 0
        for nuc in sequence:
            code = self._nuc_to_code.get(nuc)
            if code is None:
                raise KffFormatError(f"Cannot encode byte {nuc!r} in sequence {sequence!r}")
            value = (value << 2) | code
        return value.to_bytes(_packed_size(len(sequence)), 'big')

    def write_variables(self, variables: Dict[str, int]):
        """Write a variables section; later sections use the updated values."""
        self._check_open()
        self._handle.write(SECTION_VARIABLES)
        self._handle.write(struct.pack('>Q', len(variables)))
        for name, value in variables.items():
            self._handle.write(name.encode('ascii') + b"\0")
            self._handle.write(struct.pack('>Q', value))

        self.variables.update(variables)
        self.sections_written += 1
        logger.debug(f"Wrote variables section: {variables}")

    def _require_variables(self, *names: str):
        missing = [name for name in REQUIRED_VARIABLES + names if name not in self.variables]
        if missing:
            raise KffFormatError(
                f"Variables {', '.join(missing)} must be written before sequence sections"
            )

    def _block_header_sizes(self) -> Tuple[int, int]:
        max_kmers = self.variables['max']
        return _int_size(max_kmers), _int_size(self.variables['k'] + max_kmers - 1)

    def _check_block(self, nb_kmers: int, data: bytes):
        if not 1 <= nb_kmers <= self.variables['max']:
            raise KffFormatError(
                f"Block of {nb_kmers} k-mers outside [1, {self.variables['max']}]"
            )
        if len(data) != nb_kmers * self.variables['data_size']:
            raise KffFormatError(
                f"Block of {nb_kmers} k-mers carries {len(data)} data bytes, "
                f"expected {nb_kmers * self.variables['data_size']}"
            )

    def write_raw_section(self, sequences: Sequence[bytes], datas: Sequence[bytes]):
        """Write one raw block per sequence."""
        self._check_open()
        self._require_variables()
        if len(sequences) != len(datas):
            raise KffFormatError("sequences and datas must have the same length")

        k = self.variables['k']
        count_size, _ = self._block_header_sizes()

        self._handle.write(SECTION_RAW)
        self._handle.write(struct.pack('>Q', len(sequences)))
        for sequence, data in zip(sequences, datas):
            nb_kmers = len(sequence) - k + 1
            self._check_block(nb_kmers, data)
            self._handle.write(nb_kmers.to_bytes(count_size, 'big'))
            self._handle.write(self.pack(sequence))
            self._handle.write(bytes(data))

        self.sections_written += 1

    def write_minimizer_section(self, minimizer: bytes, positions: Sequence[int],
                                sequences: Sequence[bytes], datas: Sequence[bytes]):
        """
        Write one minimizer section.

        Args:
            minimizer: Minimizer nucleotides
            positions: Minimizer offset in each un-spliced superstring
            sequences: Superstrings with the minimizer excised
            datas: Per k-mer data of each superstring
        """
        self._check_open()
        self._require_variables('m')
        if not len(positions) == len(sequences) == len(datas):
            raise KffFormatError("positions, sequences and datas must have the same length")

        k = self.variables['k']
        m = self.variables['m']
        if len(minimizer) != m:
            raise KffFormatError(f"Minimizer {minimizer!r} is not {m} bases long")

        count_size, pos_size = self._block_header_sizes()

        self._handle.write(SECTION_MINIMIZER)
        self._handle.write(self.pack(minimizer))
        self._handle.write(struct.pack('>Q', len(sequences)))
        for position, sequence, data in zip(positions, sequences, datas):
            nb_kmers = len(sequence) + m - k + 1
            self._check_block(nb_kmers, data)
            if not 0 <= position <= len(sequence):
                raise KffFormatError(f"Minimizer position {position} outside the sequence")
            self._handle.write(nb_kmers.to_bytes(count_size, 'big'))
            self._handle.write(position.to_bytes(pos_size, 'big'))
            self._handle.write(self.pack(sequence))
            self._handle.write(bytes(data))

        self.sections_written += 1

    def _check_open(self):
        if self._closed:
            raise KffFormatError("Writer is closed")

    def close(self):
        """Write the footer and close the underlying file."""
        if self._closed:
            return
        try:
            self._handle.write(MAGIC)
            self._handle.flush()
        finally:
            self._closed = True
            if self._owns_handle:
                self._handle.close()

    def __enter__(self) -> KffWriter:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


# ============================================================================
# Reader
# ============================================================================

@dataclass
class KffBlock:
    """One block: a full sequence (minimizer re-inserted) and its data."""
    sequence: str
    data: bytes


@dataclass
class KffSection:
    kind: str  # 'r' or 'm'
    minimizer: Optional[str] = None
    blocks: List[KffBlock] = field(default_factory=list)


class KffReader:
    """
    Read back a file produced by KffWriter.

    Example:
        >>> reader = KffReader("out.kff")
        >>> for kmer, data in reader.kmers():
        ...     print(kmer, data[0])
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.variables: Dict[str, int] = {}
        self._sections: Optional[List[KffSection]] = None

        with open(self.path, 'rb') as f:
            self._data = f.read()
        self._pos = 0
        self._read_header()

    def _take(self, size: int) -> bytes:
        chunk = self._data[self._pos:self._pos + size]
        if len(chunk) != size:
            raise KffFormatError(f"Unexpected end of file in {self.path}")
        self._pos += size
        return chunk

    def _u64(self) -> int:
        return struct.unpack('>Q', self._take(8))[0]

    def _read_header(self):
        if self._take(3) != MAGIC:
            raise KffFormatError(f"{self.path} is not a KFF file")

        major, minor, encoding, unique, canonical, free_size = struct.unpack(
            '>BBBBBI', self._take(9)
        )
        self.version = (major, minor)
        self.encoding = encoding
        self.unique = bool(unique)
        self.canonical = bool(canonical)
        self.free_block = self._take(free_size)
        self._code_to_nuc = {
            code: chr(nuc) for nuc, code in _encoding_table(encoding).items() if nuc < 97
        }

    def unpack(self, packed: bytes, nb_nucleotides: int) -> str:
        value = int.from_bytes(packed, 'big')
        return ''.join(
            self._code_to_nuc[(value >> (2 * (nb_nucleotides - 1 - i))) & 0b11]
            for i in range(nb_nucleotides)
        )

    def _read_variables(self):
        for _ in range(self._u64()):
            end = self._data.find(b"\0", self._pos)
            if end < 0:
                raise KffFormatError(f"Unterminated variable name in {self.path}")
            name = self._data[self._pos:end].decode('ascii')
            self._pos = end + 1
            self.variables[name] = self._u64()

    def _block_header_sizes(self) -> Tuple[int, int]:
        missing = [name for name in REQUIRED_VARIABLES if name not in self.variables]
        if missing:
            raise KffFormatError(
                f"Sequence section before variables {', '.join(missing)} in {self.path}"
            )
        max_kmers = self.variables['max']
        return _int_size(max_kmers), _int_size(self.variables['k'] + max_kmers - 1)

    def _read_raw(self) -> KffSection:
        k = self.variables.get('k', 0)
        count_size, _ = self._block_header_sizes()
        section = KffSection(kind='r')

        for _ in range(self._u64()):
            nb_kmers = int.from_bytes(self._take(count_size), 'big')
            length = k + nb_kmers - 1
            sequence = self.unpack(self._take(_packed_size(length)), length)
            data = self._take(nb_kmers * self.variables['data_size'])
            section.blocks.append(KffBlock(sequence, data))

        return section

    def _read_minimizer(self) -> KffSection:
        if 'm' not in self.variables:
            raise KffFormatError(f"Minimizer section before variable m in {self.path}")
        k = self.variables['k']
        m = self.variables['m']
        count_size, pos_size = self._block_header_sizes()

        minimizer = self.unpack(self._take(_packed_size(m)), m)
        section = KffSection(kind='m', minimizer=minimizer)

        for _ in range(self._u64()):
            nb_kmers = int.from_bytes(self._take(count_size), 'big')
            position = int.from_bytes(self._take(pos_size), 'big')
            length = k + nb_kmers - 1 - m
            flank = self.unpack(self._take(_packed_size(length)), length)
            data = self._take(nb_kmers * self.variables['data_size'])
            section.blocks.append(
                KffBlock(flank[:position] + minimizer + flank[position:], data)
            )

        return section

    def sections(self) -> List[KffSection]:
        """Parse every sequence section of the file."""
        if self._sections is not None:
            return self._sections

        sections = []
        while True:
            kind = self._take(1)
            if kind == MAGIC[:1]:
                if self._take(2) != MAGIC[1:]:
                    raise KffFormatError(f"Corrupted footer in {self.path}")
                break
            if kind == SECTION_VARIABLES:
                self._read_variables()
            elif kind == SECTION_RAW:
                sections.append(self._read_raw())
            elif kind == SECTION_MINIMIZER:
                sections.append(self._read_minimizer())
            else:
                raise KffFormatError(f"Unknown section type {kind!r} in {self.path}")

        self._sections = sections
        return sections

    def kmers(self) -> Iterator[Tuple[str, bytes]]:
        """Yield every (k-mer, data) pair stored in the file."""
        sections = self.sections()
        k = self.variables['k']
        data_size = self.variables['data_size']

        for section in sections:
            for block in section.blocks:
                for i in range(len(block.sequence) - k + 1):
                    yield (block.sequence[i:i + k],
                           block.data[i * data_size:(i + 1) * data_size])


__all__ = [
    'DEFAULT_ENCODING',
    'KffWriter',
    'KffReader',
    'KffSection',
    'KffBlock',
]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
