"""
BookTender Test Suite

Tests are organized into:
- unit/: Unit tests for individual components
- integration/: Pipeline, duplicate detection and CLI workflows
"""
