"""
Indexer Initialization Module.

- logging: Logger configuration
- shutdown: Graceful shutdown handler
"""

__all__ = []
