"""Per-user notifications raised by the other modules."""
