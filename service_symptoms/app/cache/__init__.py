"""
Cache package for the Symptoms Service.

Provides the cache key namespace, a Redis-backed key/value client with
per-key TTLs, and the coordinator that applies cache-aside reads and
write invalidation on top of the PostgreSQL store.
"""
