"""Top-level wt commands (one module per command)."""
