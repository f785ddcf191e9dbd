"""The phase that registers buildpack overrides before staging."""


class Initialize:
    """Applies caller-supplied buildpacks to the registry."""

    def __init__(self, registry):
        self._registry = registry

    def run(self, buildpacks):
        """Override the registry's entries with *buildpacks*."""
        self._registry.override(*buildpacks)