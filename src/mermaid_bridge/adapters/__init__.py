"""Host capability interfaces and bindings."""
