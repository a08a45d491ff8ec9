"""Parallel driver for external de novo peptide sequencing tools."""

__version__ = "0.1.0"
