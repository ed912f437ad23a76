"""Integrations with the ORM layer holding the domain objects."""
