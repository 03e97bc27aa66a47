"""Document ingestion and hybrid retrieval for grounded question answering."""

__version__ = "0.1.0"
