"""Vector indexing and retrieval for browser tabs.

Provides sentence-aware chunking, OpenAI embedding generation with a synthetic
fallback, and a tiered store (ChromaDB remote, local JSON files, text match)
that keeps indexing and search working when the remote tier is unavailable.
"""
