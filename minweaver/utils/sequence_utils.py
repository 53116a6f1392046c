#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

2-bit sequence codec.

Nucleotides are packed two bits per base into a single integer, the
5'-most base in the most significant occupied pair:

- A or a -> 00
- C or c -> 01
- T or t -> 10
- G or g -> 11

The code is taken from the second and third bit of the ASCII byte, so any
other byte is silently aliased to one of the four bases (N and n become G).
With this coding the complement of a base is a XOR with 0b10.

A k-mer never exceeds 64 bases (one 128-bit word).

Author: MinWeaver Development Team
License: MIT
"""

from typing import Tuple, Union

from ..errors import SequenceEncodingError, SequenceLengthError

MAX_KMER_SIZE = 64
MAX_MINIMIZER_SIZE = 32

_WORD_BITS = 128
_COMPLEMENT_MASK = 0xAAAA_AAAA_AAAA_AAAA_AAAA_AAAA_AAAA_AAAA

# Swap network used to reverse the 2-bit fields of a 128-bit word
_REVERSE_STEPS = (
    (2, 0x3333_3333_3333_3333_3333_3333_3333_3333),
    (4, 0x0F0F_0F0F_0F0F_0F0F_0F0F_0F0F_0F0F_0F0F),
    (8, 0x00FF_00FF_00FF_00FF_00FF_00FF_00FF_00FF),
    (16, 0x0000_FFFF_0000_FFFF_0000_FFFF_0000_FFFF),
    (32, 0x0000_0000_FFFF_FFFF_0000_0000_FFFF_FFFF),
    (64, 0x0000_0000_0000_0000_FFFF_FFFF_FFFF_FFFF),
)

_BITS_TO_NUC = 'ACTG'


def nuc_to_bits(nuc: int) -> int:
    """
    Convert one nucleotide byte to its 2-bit code.

    Example:
        >>> nuc_to_bits(ord('T'))
        2
    """
    return (nuc >> 1) & 0b11


def bits_to_nuc(bits: int) -> str:
    """Convert a 2-bit code to its nucleotide (out-of-range codes map to G)."""
    if 0 <= bits < 4:
        return _BITS_TO_NUC[bits]
    return 'G'


def encode(sequence: Union[str, bytes], strict: bool = True) -> int:
    """
    Pack a nucleotide sequence into its 2-bit integer representation.

    Args:
        sequence: Nucleotide string or ASCII bytes
        strict: Raise on sequences longer than 64 bases. When False only
            the last 64 bases are kept.

    Returns:
        Packed k-mer

    Raises:
        SequenceEncodingError: If the sequence is not ASCII
        SequenceLengthError: If strict and the sequence exceeds 64 bases

    Example:
        >>> bin(encode("TAGGC"))
        '0b1000111101'
    """
    if isinstance(sequence, str):
        try:
            data = sequence.encode('ascii')
        except UnicodeEncodeError as e:
            raise SequenceEncodingError(f"non-ASCII sequence {sequence!r}") from e
    else:
        data = bytes(sequence)
        if not data.isascii():
            raise SequenceEncodingError(f"non-ASCII sequence {data!r}")

    if len(data) > MAX_KMER_SIZE:
        if strict:
            raise SequenceLengthError(
                f"sequence of {len(data)} bases exceeds the {MAX_KMER_SIZE} base limit"
            )
        data = data[-MAX_KMER_SIZE:]

    kmer = 0
    for nuc in data:
        kmer = (kmer << 2) | nuc_to_bits(nuc)

    return kmer


def decode(kmer: int, k: int) -> str:
    """
    Unpack the k lowest 2-bit fields of a k-mer into a nucleotide string.

    Example:
        >>> decode(0b1101011000, 5)
        'GCCTA'
    """
    bases = []
    for _ in range(k):
        bases.append(bits_to_nuc(kmer & 0b11))
        kmer >>= 2

    return ''.join(reversed(bases))


def _complement_untruncated(kmer: int) -> int:
    return kmer ^ _COMPLEMENT_MASK


def complement(kmer: int, k: int) -> int:
    """Complement every base of a k-mer (A<->T, C<->G)."""
    return _complement_untruncated(kmer) & ((1 << (2 * k)) - 1)


def reverse(kmer: int, k: int) -> int:
    """Reverse the base order of a k-mer."""
    for shift, mask in _REVERSE_STEPS:
        kmer = ((kmer >> shift) & mask) | ((kmer & mask) << shift)

    return kmer >> (_WORD_BITS - 2 * k)


def reverse_complement(kmer: int, k: int) -> int:
    """
    Reverse complement of a k-mer.

    Example:
        >>> decode(reverse_complement(encode("GCCTA"), 5), 5)
        'TAGGC'
    """
    return reverse(_complement_untruncated(kmer), k)


def canonical(kmer: int, k: int) -> Tuple[int, bool]:
    """
    Canonical form of a k-mer.

    Returns:
        (value, is_forward): the smaller of the k-mer and its reverse
        complement, and whether the k-mer itself was the smaller one
    """
    rev = reverse_complement(kmer, k)

    if kmer < rev:
        return kmer, True
    return rev, False


def parity_even(kmer: int) -> bool:
    """Return True if the k-mer has an even popcount."""
    return bin(kmer).count('1') % 2 == 0


__all__ = [
    'MAX_KMER_SIZE',
    'MAX_MINIMIZER_SIZE',
    'nuc_to_bits',
    'bits_to_nuc',
    'encode',
    'decode',
    'complement',
    'reverse',
    'reverse_complement',
    'canonical',
    'parity_even',
]

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
