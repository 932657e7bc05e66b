"""
XO Market Sync - indexer-to-database synchronization and AI evaluation.

Keeps a PostgreSQL record of every market created on-chain, discovered
through the event indexer, and enriches each record with resolvability,
clarity and manipulability scores from an LLM (or a deterministic
heuristic when no provider is reachable).
"""

__version__ = "0.1.0"
