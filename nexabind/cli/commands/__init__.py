"""NexaBind CLI command implementations."""
