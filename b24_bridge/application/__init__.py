"""Installation use cases built on the RPC client."""
