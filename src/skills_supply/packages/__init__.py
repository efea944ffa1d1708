"""Package resolution, fetching, structure detection and skill extraction."""
