"""Services Layer — stream parsing, tool dispatch, handlers, and the conversation loop.

Invariants:
    - Handlers split by stage (one file per stage)
    - Tool dispatch uses an explicit dict mapping (no auto-discovery)
"""
