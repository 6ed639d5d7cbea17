"""Session/data synchronization services."""
