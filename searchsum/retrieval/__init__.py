"""Retrieval package.

Architectural role:
    Turns a search query into an ordered aggregated document.

Scope:
    - `web`: search client, page fetcher, and HTML text extractor.
    - `aggregator`: concurrent per-URL fetch/extract with failure isolation.
"""
