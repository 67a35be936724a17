"""Server-side relay for upstream APIs that need credentials or CORS bypass."""
