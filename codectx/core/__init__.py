"""Core application infrastructure for codectx."""
