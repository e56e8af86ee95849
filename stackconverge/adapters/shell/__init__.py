"""Shell adapters — command runner and local filesystem."""
