"""Balance providers."""
