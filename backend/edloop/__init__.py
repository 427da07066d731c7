"""edloop search synchronization and query-fallback backend."""
