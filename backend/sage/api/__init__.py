"""API Layer — FastAPI routes, admission control, SSE framing, and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes stay thin and delegate to services
"""
