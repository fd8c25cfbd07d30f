"""Terminal output and logging setup."""
