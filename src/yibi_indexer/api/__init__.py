"""HTTP status surface for the indexer."""
