"""HTTP facade that re-exposes the catalog and cached artifacts."""
