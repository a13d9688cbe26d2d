"""Domain layer: records, identifiers and the key dictionary."""
