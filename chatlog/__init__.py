"""Time expressions, .dat image decoding, decompression, file monitoring,
temporary copies, configuration and small helpers for chat history tools."""

__version__ = "0.1.0"