"""Cross-cutting handler utilities: observability, errors, response wrapper, auth and service wiring."""
