"""Operating system adapters — apt, systemd."""
