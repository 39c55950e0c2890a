"""Domain layer: value types and repository protocols."""
