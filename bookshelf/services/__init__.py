"""
Services Package

Business logic kept separate from HTTP handling so routers and triggers can
share it and tests can exercise it without a client.

Current services:
- batch.py: Atomic write batches of at most 100 statements
- cache.py: Redis book-detail cache with graceful degradation
- projections.py: SavedBook creation, patching and pruning
- rate_limiter.py: Rate limiting with slowapi and Redis backend
- ratings.py: Incremental rating summary with compare-and-swap
- search.py: Elasticsearch search with SQL fallback
- security.py: Password hashing and JWT utilities
"""
