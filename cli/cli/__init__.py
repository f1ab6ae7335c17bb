"""alertwatch command-line interface."""
