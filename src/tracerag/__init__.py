"""tracerag - retrieval-augmented context for test failure analysis."""

__version__ = "0.1.0"
