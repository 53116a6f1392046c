#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command-line interface for MinWeaver.

This module provides the main CLI entry point and all subcommands for
converting k-mer count tables into minimizer-compacted KFF files.
"""

import logging
import sys
from collections import Counter
from importlib.metadata import PackageNotFoundError, version as distribution_version
from pathlib import Path

import click
import yaml

from .version import __version__
from .config.schema import (
    apply_overrides,
    load_config,
    save_config_template,
    validate_config,
)
from .errors import MinWeaverError
from .io_utils.kff import KffReader
from .preprocessing.bucket_store import STAGING_BACKENDS


def configure_logging(level: str = 'INFO', log_file=None):
    """Route log records to stderr and, optionally, a log file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def _parse_delimiter(ctx, param, value):
    if value is None:
        return None
    if value == '\\t':
        return '\t'
    if len(value) != 1:
        raise click.BadParameter("delimiter must be a single character")
    return value


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, verbose, quiet):
    """
    MinWeaver: minimizer compaction of k-mer counts

    Converts a table of (k-mer, count) pairs into a KFF file in which k-mers
    sharing a minimizer are chained into superstrings and the minimizer is
    stored once per section.
    """
    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet


# ============================================================================
# Conversion
# ============================================================================

@main.command()
@click.option('--input', '-i', 'input_path', required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Path of k-mer counts in csv format')
@click.option('--output', '-o', 'output_path', required=True,
              type=click.Path(dir_okay=False),
              help='Path of the kff file')
@click.option('--kmer-size', '-k', type=int, default=None, help='K-mer size (1-64)')
@click.option('--minimizer-size', '-m', type=int, default=None,
              help='Minimizer size (1-32, smaller than k)')
@click.option('--delimiter', '-d', default=None, callback=_parse_delimiter,
              help="Delimiter between k-mer and count in input [default: ',']")
@click.option('--prefix', '-p', default=None,
              help='Prefix added before temporary bucket files (disk staging)')
@click.option('--staging', type=click.Choice(STAGING_BACKENDS), default=None,
              help='Where buckets are staged [default: memory]')
@click.option('--spill-threshold', type=int, default=None,
              help='Staged records kept in memory before spilling (spill staging)')
@click.option('--workers', '-t', type=int, default=None,
              help='Worker processes for bucket compaction [default: 1]')
@click.option('--strict-branching/--no-strict-branching', default=None,
              help='Fail when a bucket contains a branching overlap path')
@click.option('--config', '-c', 'config_file', type=click.Path(exists=True),
              help='Configuration file (YAML)')
@click.pass_context
def convert(ctx, input_path, output_path, kmer_size, minimizer_size, delimiter,
            prefix, staging, spill_threshold, workers, strict_branching, config_file):
    """Convert a k-mer count table into a minimizer-compacted KFF file."""
    from .utils.pipeline import ConversionPipeline

    quiet = ctx.obj.get('QUIET', False)

    try:
        config = load_config(Path(config_file) if config_file else None)
    except MinWeaverError as e:
        click.echo(f"✗ Error loading configuration: {e}", err=True)
        sys.exit(2)

    apply_overrides(config, {
        'kmers.k': kmer_size,
        'kmers.m': minimizer_size,
        'input.delimiter': delimiter,
        'staging.backend': staging,
        'staging.prefix': prefix,
        'staging.spill_threshold': spill_threshold,
        'compaction.workers': workers,
        'compaction.strict_branching': strict_branching,
    })

    errors = validate_config(config)
    if errors:
        click.echo("✗ Invalid parameters:", err=True)
        for error in errors:
            click.echo(f"  • {error}", err=True)
        sys.exit(2)

    level = config['output']['logging']['level']
    if ctx.obj.get('VERBOSE'):
        level = 'DEBUG'
    elif quiet:
        level = 'WARNING'
    configure_logging(level, config['output']['logging']['log_file'])

    try:
        stats = ConversionPipeline(config).run(input_path, output_path)
    except (MinWeaverError, OSError) as e:
        click.echo(f"✗ Conversion failed: {e}", err=True)
        sys.exit(1)

    if not quiet:
        click.echo(f"✓ Wrote {output_path}")
        click.echo(f"  K-mers read:        {stats.rows}")
        click.echo(f"  Buckets:            {stats.buckets}")
        click.echo(f"  Superstrings:       {stats.superstrings}")
        click.echo(f"  Overflow k-mers:    {stats.overflow_kmers}")
        if stats.branch_points:
            click.echo(f"  Branch points:      {stats.branch_points}")


@main.command()
@click.argument('kff_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--kmers', 'dump_kmers', is_flag=True,
              help='Print every k-mer with its count instead of a summary')
def inspect(kff_file, dump_kmers):
    """Summarize (or dump) the content of a KFF file."""
    try:
        reader = KffReader(kff_file)
        sections = reader.sections()

        if dump_kmers:
            for kmer, data in reader.kmers():
                click.echo(f"{kmer}\t{int.from_bytes(data, 'big')}")
            return

        kinds = Counter(section.kind for section in sections)
        nb_kmers = sum(1 for _ in reader.kmers())
    except (MinWeaverError, OSError) as e:
        click.echo(f"✗ Cannot read {kff_file}: {e}", err=True)
        sys.exit(1)

    click.echo(f"KFF v{reader.version[0]}.{reader.version[1]}: {kff_file}")
    click.echo("\nVariables:")
    for name, value in reader.variables.items():
        click.echo(f"  {name} = {value}")
    click.echo("\nSections:")
    click.echo(f"  Minimizer sections: {kinds.get('m', 0)}")
    click.echo(f"  Raw sections:       {kinds.get('r', 0)}")
    click.echo(f"  Blocks:             {sum(len(s.blocks) for s in sections)}")
    click.echo(f"  K-mers:             {nb_kmers}")


# ============================================================================
# Configuration Management Commands
# ============================================================================

@main.group()
def config():
    """Configuration management commands."""
    pass


@config.command('init')
@click.option('--output', '-o', type=click.Path(), default='minweaver_config.yaml',
              help='Output configuration file path')
@click.option('--kmer-size', '-k', type=int, default=31, help='K-mer size')
@click.option('--minimizer-size', '-m', type=int, default=15, help='Minimizer size')
def config_init(output, kmer_size, minimizer_size):
    """Generate a template configuration file with all available parameters."""
    click.echo(f"Generating configuration template: {output}")

    try:
        save_config_template(Path(output), k=kmer_size, m=minimizer_size)
    except OSError as e:
        click.echo(f"✗ Error creating configuration: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Configuration file created: {output}")


@config.command('validate')
@click.argument('config_file', type=click.Path(exists=True))
def config_validate(config_file):
    """Validate a configuration file."""
    click.echo(f"Validating configuration file: {config_file}")

    try:
        config = load_config(Path(config_file))
    except MinWeaverError as e:
        click.echo(f"✗ Error validating configuration: {e}", err=True)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        click.echo("\n✗ Configuration validation failed:")
        for error in errors:
            click.echo(f"  • {error}", err=True)
        sys.exit(1)

    click.echo("✓ Configuration is valid")
    click.echo(f"  k={config['kmers']['k']} m={config['kmers']['m']}")
    click.echo(f"  Staging: {config['staging']['backend']}")
    click.echo(f"  Workers: {config['compaction']['workers']}")


@config.command('show')
@click.argument('config_file', type=click.Path(exists=True))
def config_show(config_file):
    """Display the effective configuration (defaults merged with the file)."""
    try:
        config = load_config(Path(config_file))
    except MinWeaverError as e:
        click.echo(f"✗ Error reading configuration: {e}", err=True)
        sys.exit(1)

    click.echo(yaml.dump(config, default_flow_style=False, sort_keys=False))


# ============================================================================
# Utility Commands
# ============================================================================

@main.command()
def version():
    """Show version information."""
    click.echo(f"MinWeaver v{__version__}")
    click.echo("\nDependencies:")

    for dist in ("mmh3", "click", "PyYAML"):
        try:
            click.echo(f"  {dist}: {distribution_version(dist)}")
        except PackageNotFoundError:
            click.echo(f"  {dist}: not installed")


if __name__ == '__main__':
    sys.exit(main())
