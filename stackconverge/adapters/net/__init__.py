"""Network adapters — release downloads, browser notification."""
