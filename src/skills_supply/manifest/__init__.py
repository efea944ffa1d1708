"""agents.toml parsing, coercion, discovery, merging and serialization."""
