"""LLM access package.

Module split:
    - `service`: prompt-to-payload adapter.
    - `client`: HTTP transport with single-shot and streaming response handling.
"""
