"""Infrastructure: master persistence, tenant database adapters, caches and external APIs."""
