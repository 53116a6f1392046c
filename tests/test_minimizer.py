#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

Tests for minimizer selection.

Author: MinWeaver Development Team
License: MIT
"""

import random

from minweaver.utils.minimizer import Minimizer, get_minimizer, is_ambiguous, window_hash
from minweaver.utils.sequence_utils import canonical, decode, encode, reverse_complement


def _revcomp_str(sequence):
    return sequence[::-1].translate(str.maketrans("ACGT", "TGCA"))


class TestGetMinimizer:
    """Test minimizer values, offsets and orientation."""

    def test_orientation_by_minimizer(self):
        """Test k-mers of a sliding window reoriented by their minimizer."""
        k, m = 7, 5
        seq = "ACCTATGAACTTACG"

        oriented = []
        for i in range(len(seq) - k + 1):
            kmer = encode(seq[i:i + k])
            minimizer = get_minimizer(kmer, k, m)
            oriented.append(kmer if minimizer.is_forward else reverse_complement(kmer, k))

        expected = [
            "CATAGGT", "TCATAGG", "TTCATAG", "TATGAAC", "ATGAACT",
            "TGAACTT", "TAAGTTC", "AACTTAC", "CGTAAGT",
        ]
        assert [decode(kmer, k) for kmer in oriented] == expected

    def test_returns_named_tuple(self):
        """Test the result fields."""
        result = get_minimizer(encode("ACCTATG"), 7, 5)

        assert isinstance(result, Minimizer)
        value, offset, is_forward = result
        assert value == result.value
        assert 0 <= offset <= 2
        assert isinstance(is_forward, bool)

    def test_deterministic(self):
        """Test that the same k-mer always yields the same minimizer."""
        kmer = encode("GATTACAGATTACAGATTACA")
        assert get_minimizer(kmer, 21, 7) == get_minimizer(kmer, 21, 7)

    def test_minimizer_is_canonical_window(self):
        """Test that the minimizer sits at its offset in the stated orientation."""
        rng = random.Random(5)
        for k, m in ((7, 5), (11, 6), (31, 15), (64, 32)):
            for _ in range(25):
                sequence = ''.join(rng.choice("ACGT") for _ in range(k))
                value, offset, forward = get_minimizer(encode(sequence), k, m)
                window = sequence[offset:offset + m]
                mini = decode(value, m)

                assert canonical(encode(window), m)[0] == value
                if forward:
                    assert window == mini
                else:
                    assert _revcomp_str(window) == mini

    def test_minimizer_has_lowest_score(self):
        """Test that no other window scores lower."""
        k, m = 15, 5
        sequence = "GATTACACCGTTAGC"
        value, _, _ = get_minimizer(encode(sequence), k, m)

        scores = [
            window_hash(canonical(encode(sequence[i:i + m]), m)[0])
            for i in range(k - m + 1)
        ]
        assert window_hash(value) == min(scores)

    def test_reverse_complement_shares_minimizer(self):
        """Test that a k-mer and its reverse complement share a minimizer."""
        kmer = encode("ACCTGATGCAT")
        rc = reverse_complement(kmer, 11)

        assert get_minimizer(kmer, 11, 6).value == get_minimizer(rc, 11, 6).value

    def test_window_hash_is_unsigned_128(self):
        """Test that window scores are unsigned 128-bit integers."""
        for window in (0, 1, encode("ACGTACGT")):
            score = window_hash(window)
            assert 0 <= score < (1 << 128)


class TestAmbiguity:
    """Test detection of repeated minimizers."""

    def test_homopolymer_is_ambiguous(self):
        """Test that a poly-A k-mer repeats its minimizer."""
        kmer = encode("AAAAAAA")
        value = get_minimizer(kmer, 7, 3).value

        assert decode(value, 3) == "AAA"
        assert is_ambiguous(kmer, value, 7, 3)

    def test_repeated_window(self):
        """Test a minimizer present at both ends of the k-mer."""
        assert is_ambiguous(encode("ACGTTACG"), encode("ACG"), 8, 3)

    def test_reverse_complement_window_counts(self):
        """Test that occurrences are counted on canonical windows."""
        # GTT is the only window whose canonical form is AAC
        assert not is_ambiguous(encode("ACGTTACG"), encode("AAC"), 8, 3)

    def test_unique_minimizer(self):
        """Test a k-mer whose minimizer occurs once."""
        kmer = encode("ACCTG")
        value = get_minimizer(kmer, 5, 3).value

        assert not is_ambiguous(kmer, value, 5, 3)

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
