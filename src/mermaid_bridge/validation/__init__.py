"""Request validation and security policy."""
