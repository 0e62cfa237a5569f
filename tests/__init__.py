"""Tests package for codectx."""
