"""MediBook appointment scheduling and facility search engine."""

__version__ = "0.1.0"
