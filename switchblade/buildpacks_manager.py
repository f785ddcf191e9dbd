"""Assembly of the buildpacks tarball copied into staging containers."""

import copy
import hashlib
import os
import shutil

from .archives import extract_zip
from .errors import SwitchbladeError

BUILDPACKS_PREFIX = "/tmp/buildpacks"


def _local_directory(fetched):
    path = fetched if isinstance(fetched, (str, os.PathLike)) else getattr(fetched, "name", None)
    return isinstance(path, (str, os.PathLike)) and os.path.isdir(path)


class BuildpacksManager:
    """Fetches buildpacks from the registry and bundles them into one tarball.

    *archiver* provides ``with_prefix(prefix)`` and ``compress(input, output)``;
    *cache* provides ``fetch(url)``, returning a readable zip stream or the path
    of a local directory; *registry* provides ``list()``.
    """

    def __init__(self, archiver, cache, registry):
        self._archiver = archiver
        self._cache = cache
        self._registry = registry
        self._filter = ()

    def build(self, workspace, name):
        """Bundle the selected buildpacks and return the tarball's path."""
        target = os.path.join(workspace, name)
        try:
            shutil.rmtree(target)
        except FileNotFoundError:
            pass
        except OSError as err:
            raise SwitchbladeError(
                f"failed to remove existing buildpack directory: {err}"
            ) from err

        try:
            buildpacks = self._registry.list()
        except Exception as err:
            raise SwitchbladeError(f"failed to list buildpacks: {err}") from err

        for buildpack in buildpacks:
            if self._filter and buildpack.name not in self._filter:
                continue
            self._install(buildpack, target)

        output = os.path.join(workspace, f"{name}.tar.gz")
        try:
            self._archiver.with_prefix(BUILDPACKS_PREFIX).compress(target, output)
        except Exception as err:
            raise SwitchbladeError(f"failed to archive buildpacks: {err}") from err

        return output

    def order(self):
        """Return the comma-separated buildpack order and whether to skip detection."""
        try:
            buildpacks = self._registry.list()
        except Exception as err:
            raise SwitchbladeError(f"failed to list buildpacks: {err}") from err

        names = self._filter or [buildpack.name for buildpack in buildpacks]
        return ",".join(names), bool(self._filter)

    def with_buildpacks(self, *buildpacks):
        """Return a manager limited to the named buildpacks, in that order."""
        limited = copy.copy(self)
        limited._filter = tuple(buildpacks)
        return limited

    def _install(self, buildpack, target):
        try:
            fetched = self._cache.fetch(buildpack.uri)
        except Exception as err:
            raise SwitchbladeError(f"failed to fetch buildpack: {err}") from err

        digest = hashlib.md5(buildpack.name.encode(), usedforsecurity=False).hexdigest()
        destination = os.path.join(target, digest)

        if _local_directory(fetched):
            try:
                shutil.copytree(buildpack.uri, destination, symlinks=True)
            except (OSError, shutil.Error) as err:
                raise SwitchbladeError(f"failed to copy buildpack: {err}") from err
        else:
            try:
                extract_zip(fetched, destination)
            except Exception as err:
                raise SwitchbladeError(f"failed to decompress buildpack: {err}") from err

        close = getattr(fetched, "close", None)
        if close is not None:
            try:
                close()
            except Exception as err:
                raise SwitchbladeError(f"failed to close buildpack: {err}") from err