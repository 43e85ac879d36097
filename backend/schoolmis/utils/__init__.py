"""Small request-parsing and calendar helpers."""
