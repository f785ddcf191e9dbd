"""Stage and run buildpack applications in local containers for integration tests."""

__version__ = "0.1.0"