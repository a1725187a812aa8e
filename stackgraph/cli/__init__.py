"""stackgraph command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``stackgraph`` script).
"""

from stackgraph.cli.main import cli

__all__ = ["cli"]
