"""searchsum interface adapters.

Architectural role:
- Defines the external interaction boundary (command line).
- Performs argument validation and output shaping.
- Delegates the run to the core engine.
"""
