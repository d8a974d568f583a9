"""Command-line interface for the Cassandra coordinator."""
