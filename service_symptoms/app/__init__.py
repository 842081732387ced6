"""
Symptoms Service package for the Symptom Tracker.

This package stores timestamped symptom entries in PostgreSQL and serves
reads through a Redis cache-aside layer. It provides:

- app.main: API surface for symptom CRUD, trends, insights and health.
- app.cache: key namespace, Redis client and the cache-aside coordinator.
- app.persistence: PostgreSQL storage for symptoms and trend aggregates.
- app.insights: client for the insight text provider.

Guidelines:
- The service is stateless; rely on external cache/DB.
- The cache is an accelerator only. A Redis outage degrades latency, never
  correctness or availability.
- Writes never populate the cache; the next read does.
"""
