"""GX Services contact form backend."""
