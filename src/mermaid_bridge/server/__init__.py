"""Transport bindings."""
