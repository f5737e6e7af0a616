"""HTTP, persistence and logging adapters."""
