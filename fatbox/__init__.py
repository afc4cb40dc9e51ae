"""fatbox: upload relay for public file hosts with content-hash deduplication"""

__version__ = "1.0.0"
