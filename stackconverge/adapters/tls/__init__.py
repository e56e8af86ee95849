"""TLS adapters — key and certificate issuance."""
