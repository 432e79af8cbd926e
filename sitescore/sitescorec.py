#!/usr/bin/env python3
"""
SiteScore CLI - Integrated command line interface for modification site localization.
"""

import sys

import click

from . import __version__
from .phosphors.cli import phosphors


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    SiteScore: Mass spectrometry post-translational modification localization tool

    Available algorithms:
      phosphors   PhosphoRS algorithm for modification site localization

    Examples:
      sitescore phosphors -in spectra.mzML -id identifications.idXML -out results.idXML
    """
    pass


cli.add_command(phosphors)


def main():
    """Main entry point for SiteScore CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
