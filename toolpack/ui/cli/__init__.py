"""CLI command groups — thin wrappers over ``toolpack.core.services``."""
