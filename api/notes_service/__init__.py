"""Notes Service: note records with keyset-paginated listings."""

__version__ = "1.0.0"
