"""Background and administrative workers."""
