"""
cuepoint Test Suite

Test Categories:
- unit/: Fast, isolated component tests
- integration/: The wired orchestrator with fake collaborators
- fixtures/: Shared factories and fake collaborators
"""
