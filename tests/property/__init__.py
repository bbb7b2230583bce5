"""Property-based tests using Hypothesis.

These tests use generative testing to explore edge cases:
- Reconciliation idempotence and ordering
- Deletion mask never resurrecting hidden items
- Dense reindex numbering

To run property tests:
    pytest tests/property/ -v --hypothesis-show-statistics

Requires:
    hypothesis>=6.100.0
"""
