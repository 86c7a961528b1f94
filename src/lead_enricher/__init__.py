"""Budget-gated contact enrichment for candidate organizations."""

__version__ = "1.0.0"
