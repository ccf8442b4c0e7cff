"""Product tags example: SQL event store projected into a tag search table."""
