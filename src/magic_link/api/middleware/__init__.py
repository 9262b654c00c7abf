"""HTTP middleware (CORS, Prometheus)."""
