"""Resource-specific Discourse API wrappers with caching and TTL policy.

Each module in this package owns:
- the API calls for one resource (via DiscourseAPIClient)
- the cache key/value format
- the TTL policy for that resource
"""
