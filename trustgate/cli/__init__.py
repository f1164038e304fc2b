"""CLI module for trustgate."""
