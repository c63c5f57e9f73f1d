"""Test package for the chat relay and conversation synchronizer.

Structure:
    - unit/: Individual modules with scripted collaborators
    - integration/: Synchronizer and relay app wired together in-process

The model provider is always scripted; no test needs network access or an
API key. Leverages pytest with pytest-check for soft assertions.
"""
