"""Schedule sources and refresh scheduling."""
