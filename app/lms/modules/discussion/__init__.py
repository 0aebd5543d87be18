"""Course discussion topics and replies."""
