"""Services: command-line interface."""
