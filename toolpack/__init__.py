"""toolpack — install agent, command and skill bundles from a remote catalog."""

__version__ = "0.1.0"
