"""
Steam Catalog Sync.

Reconciles a curated list of Steam games, enriched with Steam Store
details and GeForce NOW availability, into a DatoCMS content store.
"""

__version__ = "0.1.0"
