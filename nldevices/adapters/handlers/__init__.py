"""Built-in action handlers, one module kind per file."""
