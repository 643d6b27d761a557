"""Command line interface for riskgate."""
