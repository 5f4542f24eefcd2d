"""Records shared across the fetcher, store and service."""
