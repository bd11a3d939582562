"""Command implementations behind the vellum CLI."""
