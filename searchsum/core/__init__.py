"""Core orchestration package.

Architectural role:
    Holds the configuration struct, error taxonomy, and data contracts shared by
    all stages, plus the `engine` that runs the stages in order.

Composition:
    - `settings`: read-only runtime configuration.
    - `errors`: typed failures tagged with `ErrorKind`.
    - `types`: values passed between stages and the terminal result.
    - `http`: shared `httpx.AsyncClient` construction.
    - `engine`: pipeline state machine and deadline handling.
"""
