"""Database adapters — MySQL / MariaDB."""
