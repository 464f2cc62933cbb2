"""
Indexer services.

Chain client, event decoder, projectors and the orchestrator wiring them.
"""
