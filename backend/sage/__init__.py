"""Sage Codex API — streaming adventure co-authoring service.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
