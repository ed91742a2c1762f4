"""Background worker threads."""
