"""Claude plugin marketplace catalogs and plugin source resolution."""
