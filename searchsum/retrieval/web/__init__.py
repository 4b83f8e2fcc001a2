"""Web access subpackage.

Provides the HTTP fetcher, the HTML text extractor, and the search provider client
used by the aggregator and the pipeline engine.
"""
