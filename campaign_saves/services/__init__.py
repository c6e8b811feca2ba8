"""Services: codec, retention policy, archive orchestration and backups."""
