"""schemashift CLI."""
