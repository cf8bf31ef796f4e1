"""Admin-side read and delete operations over notifications."""
