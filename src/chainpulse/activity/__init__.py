"""Activity query API."""
