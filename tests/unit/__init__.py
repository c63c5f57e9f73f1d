"""Unit tests for individual components in isolation.

Coverage:
    - gateway/: Config validation, request building, fragment stream contract
    - sync/: Prompt layout, profiles, sessions, relay client, synchronizer
    - storage/: In-memory message log and blob store

Uses mocks for the provider SDK and a scripted relay for the synchronizer.
"""
