"""
Test Suite for the Bookshelf API

Test Organization:
- conftest.py: Shared fixtures (test database, client, dispatcher, sample data)
- test_*_trigger.py: Trigger handlers called directly with a TriggerContext
- test_trigger_registry.py / test_batch.py: Trigger platform and batched writes
- test_auth.py, test_books.py, test_ratings.py, test_saved_books.py,
  test_users.py, test_admin.py, test_search.py, test_search_sync.py: HTTP endpoints
- test_rating_math.py, test_reconciler.py, test_client.py: Python client

Running Tests:
    # Run all tests
    pytest

    # Run with coverage
    pytest --cov=bookshelf --cov-report=html

    # Run specific file
    pytest tests/test_ratings.py

    # Run with verbose output
    pytest -v
"""
