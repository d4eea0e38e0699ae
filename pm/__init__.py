"""pm - sawmon plugin manager CLI."""
