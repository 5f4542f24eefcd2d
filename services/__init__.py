"""Documentation service and shared records."""
