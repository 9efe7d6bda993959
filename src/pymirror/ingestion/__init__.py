"""Ingestion layer.

This package contains adapters that feed values into the mirror from
sources other than live listeners (currently the key-value cache).
"""

__all__: list[str] = []
