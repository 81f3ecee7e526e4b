"""Pure domain types for the knowledge kernel. Zero I/O."""
