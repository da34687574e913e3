"""Core document pipeline: parsing, site structure, rendering and linting."""
