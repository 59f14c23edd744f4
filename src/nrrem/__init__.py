"""nrrem - Radio Environment Map generation for NR cellular scenarios."""

__version__ = "0.1.0"
