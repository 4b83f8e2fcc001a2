"""Prompting package.

Deterministic, budgeted prompt construction. No retrieval, I/O, or model
invocation happens here.
"""
