"""
Versions API service package.

The service fronts the GitHub release feed for auto-update clients:
- Fetching: releases listing plus per-release manifest lookups
- Caching: one serialized snapshot under a fixed key with a 24h TTL
- Freshness: cache hit, fresh fetch, or stale fallback on upstream failure

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.adapters: GitHub client and upstream error taxonomy.
- app.caching: Key/value backends and the snapshot cache.
- app.domain: Release models, normalization, freshness, and query views.
- app.auth: Bearer credential for the forced-refresh endpoint.
"""
