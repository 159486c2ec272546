"""Application entry points and event plumbing."""
