"""StatusFlow uptime monitoring backend."""
