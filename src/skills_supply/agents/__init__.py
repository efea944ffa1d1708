"""Agent descriptors, install planning and persisted install state."""
