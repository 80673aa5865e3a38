"""Infrastructure: document discovery and file writes."""
