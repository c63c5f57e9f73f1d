"""Integration tests for components working together as a system.

Coverage:
    - Relay endpoint over real HTTP semantics via ASGITransport
    - Full turns: synchronizer -> relay -> scripted gateway -> message log

Only the model provider is replaced; everything else runs as in production.
"""
