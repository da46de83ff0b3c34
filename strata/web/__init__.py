"""Web search and page fetch."""
