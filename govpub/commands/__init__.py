"""Click command groups for govpub."""
