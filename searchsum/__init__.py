"""searchsum: search the web, aggregate page text, and summarize it with a local model.

Package layout:
    - `core`: settings, error taxonomy, data contracts, and the pipeline engine.
    - `retrieval`: search client, page fetcher, extractor, and the fan-out aggregator.
    - `prompting`: budgeted prompt assembly.
    - `llm`: completion backend transport.
    - `api`: command-line adapter.
"""

__version__ = "0.2.0"
