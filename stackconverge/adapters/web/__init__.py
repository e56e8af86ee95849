"""Web server adapters — Apache."""
