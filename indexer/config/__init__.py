"""Indexer configuration."""
