#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MinWeaver v0.1.0

End-to-end tests for the conversion pipeline.

Author: MinWeaver Development Team
License: MIT
"""

import random
from collections import Counter

import pytest
from minweaver.errors import ConfigurationError, ParseError, SequenceEncodingError
from minweaver.io_utils.kff import KffReader
from minweaver.preprocessing.kmer_reader import parse_count, parse_rows, read_kmer_counts
from minweaver.utils.pipeline import ConversionPipeline, ConversionStats
from minweaver.utils.sequence_utils import canonical, decode, encode

K = 11
M = 6


def _revcomp_str(sequence):
    return sequence[::-1].translate(str.maketrans("ACGT", "TGCA"))


def _canonical_str(sequence):
    return decode(canonical(encode(sequence), len(sequence))[0], len(sequence))


def _count_rows(reference, seed=0):
    """
    Count table for every k-mer of a reference plus two homopolymers.

    Rows are shuffled and about half of them are reverse complemented.
    """
    rng = random.Random(seed)
    rows = [
        (reference[i:i + K], (i * 7) % 256)
        for i in range(len(reference) - K + 1)
    ]
    rows += [("A" * K, 200), ("C" * K, 201)]
    rng.shuffle(rows)
    return [
        (_revcomp_str(kmer) if rng.random() < 0.5 else kmer, count)
        for kmer, count in rows
    ]


def _write_table(path, rows, delimiter=','):
    path.write_text(''.join(f"{kmer}{delimiter}{count}\n" for kmer, count in rows))
    return path


def _read_back(path):
    return Counter(
        (_canonical_str(kmer), data[0]) for kmer, data in KffReader(path).kmers()
    )


class TestConversion:
    """Test that every input k-mer survives conversion."""

    def test_round_trip(self, temp_output_dir, reference_factory, config_factory):
        """Test that the output holds exactly the input k-mers and counts."""
        reference = reference_factory(80, M, seed=1)
        rows = _count_rows(reference)
        table = _write_table(temp_output_dir / "counts.csv", rows)
        output = temp_output_dir / "counts.kff"

        stats = ConversionPipeline(config_factory(K, M)).run(table, output)

        expected = Counter((_canonical_str(kmer), count) for kmer, count in rows)
        assert _read_back(output) == expected

        assert isinstance(stats, ConversionStats)
        assert stats.rows == len(rows)
        assert stats.overflow_kmers == 2
        assert stats.compacted_kmers == len(rows) - 2
        assert stats.branch_points == 0
        # Unique windows: one superstring per bucket
        assert stats.superstrings == stats.buckets

    def test_sections(self, temp_output_dir, reference_factory, config_factory):
        """Test one minimizer section per bucket, then the raw overflow section."""
        reference = reference_factory(60, M, seed=2)
        table = _write_table(temp_output_dir / "counts.csv", _count_rows(reference))
        output = temp_output_dir / "counts.kff"

        stats = ConversionPipeline(config_factory(K, M)).run(table, output)

        reader = KffReader(output)
        sections = reader.sections()
        kinds = [section.kind for section in sections]
        assert kinds == ['m'] * stats.buckets + ['r']
        assert reader.variables == {'k': K, 'm': M, 'max': 255, 'data_size': 1}

        minimizers = [section.minimizer for section in sections[:-1]]
        assert minimizers == sorted(minimizers, key=lambda s: encode(s))
        for section in sections[:-1]:
            for block in section.blocks:
                assert section.minimizer in block.sequence

        assert sorted(
            _canonical_str(block.sequence) for block in sections[-1].blocks
        ) == ["A" * K, "C" * K]

    def test_no_overflow_section(self, temp_output_dir, reference_factory, config_factory):
        """Test that no raw section is written without ambiguous k-mers."""
        reference = reference_factory(40, M, seed=3)
        pairs = [(encode(reference[i:i + K]), 1) for i in range(len(reference) - K + 1)]
        output = temp_output_dir / "counts.kff"

        stats = ConversionPipeline(config_factory(K, M)).convert(pairs, output)

        assert stats.overflow_kmers == 0
        assert all(section.kind == 'm' for section in KffReader(output).sections())

    def test_input_order_does_not_matter(self, temp_output_dir, reference_factory,
                                         config_factory):
        """Test that shuffled input yields a byte-identical file."""
        reference = reference_factory(80, M, seed=4)
        rows = _count_rows(reference, seed=10)
        shuffled = list(rows)
        random.Random(99).shuffle(shuffled)

        first = temp_output_dir / "first.kff"
        second = temp_output_dir / "second.kff"
        ConversionPipeline(config_factory(K, M)).run(
            _write_table(temp_output_dir / "a.csv", rows), first
        )
        ConversionPipeline(config_factory(K, M)).run(
            _write_table(temp_output_dir / "b.csv", shuffled), second
        )

        assert first.read_bytes() == second.read_bytes()

    @pytest.mark.parametrize('staging', [
        {'backend': 'disk'},
        {'backend': 'spill', 'spill_threshold': 5},
    ])
    def test_staging_backends_agree(self, staging, temp_output_dir, reference_factory,
                                    config_factory):
        """Test that every staging backend produces the same file."""
        reference = reference_factory(80, M, seed=5)
        table = _write_table(temp_output_dir / "counts.csv", _count_rows(reference))
        staging_dir = temp_output_dir / "staging"
        staging_dir.mkdir()
        staging = dict(staging, prefix=str(staging_dir / "bucket_"))

        memory = temp_output_dir / "memory.kff"
        other = temp_output_dir / "other.kff"
        ConversionPipeline(config_factory(K, M)).run(table, memory)
        ConversionPipeline(config_factory(K, M, staging=staging)).run(table, other)

        assert memory.read_bytes() == other.read_bytes()
        assert list(staging_dir.iterdir()) == []

    def test_workers_agree(self, temp_output_dir, reference_factory, config_factory):
        """Test that parallel compaction produces the same file."""
        reference = reference_factory(80, M, seed=6)
        table = _write_table(temp_output_dir / "counts.csv", _count_rows(reference))

        sequential = temp_output_dir / "sequential.kff"
        parallel = temp_output_dir / "parallel.kff"
        ConversionPipeline(config_factory(K, M)).run(table, sequential)
        stats = ConversionPipeline(
            config_factory(K, M, compaction={'workers': 2})
        ).run(table, parallel)

        assert sequential.read_bytes() == parallel.read_bytes()
        assert stats.buckets > 0

    def test_tab_delimiter(self, temp_output_dir, reference_factory, config_factory):
        """Test tab-separated input."""
        reference = reference_factory(40, M, seed=7)
        rows = _count_rows(reference)
        table = _write_table(temp_output_dir / "counts.tsv", rows, delimiter='\t')
        output = temp_output_dir / "counts.kff"

        ConversionPipeline(config_factory(K, M, input={'delimiter': '\t'})).run(table, output)

        assert sum(_read_back(output).values()) == len(rows)

    def test_invalid_config(self, config_factory):
        """Test that invalid parameters are rejected before any work."""
        with pytest.raises(ConfigurationError):
            ConversionPipeline(config_factory(k=5, m=5))
        with pytest.raises(ConfigurationError):
            ConversionPipeline(config_factory(k=65, m=6))

    def test_parse_error_aborts_and_cleans_up(self, temp_output_dir, config_factory):
        """Test that a bad row aborts the run and leaves no staging files."""
        table = temp_output_dir / "counts.csv"
        table.write_text("ACCTGATGCAT,3\nACCTGATGCA,4\n")
        staging_dir = temp_output_dir / "staging"
        staging_dir.mkdir()
        config = config_factory(K, M, staging={
            'backend': 'disk', 'prefix': str(staging_dir / "bucket_"),
        })

        with pytest.raises(ParseError) as exc_info:
            ConversionPipeline(config).run(table, temp_output_dir / "counts.kff")

        assert exc_info.value.line == 2
        assert list(staging_dir.iterdir()) == []


class TestKmerReader:
    """Test parsing of k-mer count tables."""

    def test_read(self, temp_output_dir):
        """Test reading rows into packed k-mers."""
        table = temp_output_dir / "counts.csv"
        table.write_text("ACGTA,1\n\nTTTTT,255\n")

        assert list(read_kmer_counts(table, 5)) == [
            (encode("ACGTA"), 1), (encode("TTTTT"), 255),
        ]

    @pytest.mark.parametrize('field', ['-1', '256', 'abc', ''])
    def test_bad_count(self, field):
        """Test that counts outside one byte are rejected."""
        with pytest.raises(ParseError):
            parse_count(field)

    def test_count_whitespace(self):
        """Test that surrounding whitespace is ignored."""
        assert parse_count(" 12 ") == 12

    def test_missing_column(self):
        """Test that a row needs a count column."""
        with pytest.raises(ParseError) as exc_info:
            list(parse_rows([["ACGTA"]], 5, source="table.csv"))

        assert str(exc_info.value).startswith("table.csv:1: ")

    def test_wrong_length(self):
        """Test that sequences must be exactly k bases."""
        with pytest.raises(ParseError):
            list(parse_rows([["ACGT", "1"]], 5))

    def test_non_ascii_sequence(self):
        """Test that non-ASCII sequences keep their error type and location."""
        with pytest.raises(SequenceEncodingError) as exc_info:
            list(parse_rows([["ACGTé", "1"]], 5, source="t.csv"))

        assert exc_info.value.line == 1
        assert exc_info.value.source == "t.csv"

    def test_non_ascii_byte_in_sequence(self, temp_output_dir):
        """Test that a non-ASCII byte in a file is reported on its row."""
        table = temp_output_dir / "counts.csv"
        table.write_bytes(b"ACGTACGTACG,1\nACGTACGT\xe9CG,2\n")

        with pytest.raises(SequenceEncodingError) as exc_info:
            list(read_kmer_counts(table, 11))

        assert exc_info.value.line == 2
        assert exc_info.value.source == str(table)

    def test_non_ascii_byte_in_count(self, temp_output_dir):
        """Test that a non-ASCII byte in the count column is a parse error."""
        table = temp_output_dir / "counts.csv"
        table.write_bytes(b"ACGTACGTACG,2\xe9\n")

        with pytest.raises(ParseError) as exc_info:
            list(read_kmer_counts(table, 11))

        assert exc_info.value.line == 1

    def test_csv_error(self, temp_output_dir):
        """Test that rows the csv module rejects become parse errors."""
        table = temp_output_dir / "counts.csv"
        table.write_text("A" * 200_000 + ",1\n")

        with pytest.raises(ParseError) as exc_info:
            list(read_kmer_counts(table, 11))

        assert exc_info.value.line == 1
        assert str(table) in str(exc_info.value)


class TestUnfilteredReferences:
    """Test round trips on random references with repeated windows."""

    @staticmethod
    def _rows(reference, seed):
        """One row per distinct canonical k-mer, randomly oriented."""
        rng = random.Random(seed)
        rows = {}
        for i in range(len(reference) - K + 1):
            kmer = reference[i:i + K]
            if rng.random() < 0.5:
                kmer = _revcomp_str(kmer)
            rows[_canonical_str(kmer)] = (kmer, rng.randrange(256))
        return list(rows.values())

    @pytest.mark.parametrize('alphabet', ['ACGT', 'AACT'])
    def test_round_trip(self, alphabet, temp_output_dir, config_factory):
        """Test the read-back multiset on unfiltered random references."""
        for seed in range(40):
            rng = random.Random(seed)
            reference = ''.join(rng.choice(alphabet) for _ in range(60))
            rows = self._rows(reference, seed)
            table = _write_table(temp_output_dir / f"counts_{seed}.csv", rows)
            output = temp_output_dir / f"counts_{seed}.kff"

            stats = ConversionPipeline(config_factory(K, M)).run(table, output)

            expected = Counter((_canonical_str(kmer), count) for kmer, count in rows)
            assert _read_back(output) == expected, f"seed {seed}"
            assert stats.compacted_kmers + stats.overflow_kmers == len(rows)

    def test_repeated_minimizer_reference(self, temp_output_dir, config_factory):
        """Test a reference whose chain would repeat its minimizer."""
        reference = "AGGTTCAAGAACAAGAATGGCC"
        rows = self._rows(reference, 0)
        table = _write_table(temp_output_dir / "counts.csv", rows)
        output = temp_output_dir / "counts.kff"

        ConversionPipeline(config_factory(K, M)).run(table, output)

        expected = Counter((_canonical_str(kmer), count) for kmer, count in rows)
        assert _read_back(output) == expected
        for section in KffReader(output).sections():
            if section.kind == 'm':
                for block in section.blocks:
                    assert block.sequence.count(section.minimizer) == 1

# MinWeaver v0.1.0
# Any usage is subject to this software's license.
