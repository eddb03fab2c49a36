"""Integration tests for the tool vector index.

Test Organization:
- test_save_search_remove_flow.py: embedding pipeline + reconciler + index
  manager driving save, search, list and remove end to end
"""
