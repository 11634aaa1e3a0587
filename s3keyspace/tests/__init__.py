"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Key codec (encode, decode, ordering, child prefixes)
    - Rate limiting (token bucket, waiters)
    - Keyspace point operations and listing
    - Namespace directories and the Store lifecycle
    - Configuration, S3 error mapping and logging
"""
