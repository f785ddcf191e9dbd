"""The phase that prepares a staging container for an application."""

import copy
import io
import os
from contextlib import contextmanager

from .environment import services_env
from .errors import NotFoundError, SwitchbladeError

BUILDPACK_APP_LIFECYCLE_REPO_URL = (
    "https://github.com/cloudfoundry/buildpackapplifecycle/archive/refs/heads/master.zip"
)
INTERNAL_NETWORK_NAME = "switchblade-internal"
BRIDGE_NETWORK_NAME = "bridge"

_CHUNK_SIZE = 64 * 1024


@contextmanager
def _failure(message):
    try:
        yield
    except Exception as err:
        raise SwitchbladeError(f"{message}: {err}") from err


def _is_not_found(err):
    while err is not None:
        if isinstance(err, NotFoundError):
            return True
        err = err.__cause__
    return False


def _copy_stream(source, writer):
    text_writer = isinstance(writer, io.TextIOBase)
    while True:
        chunk = source.read(_CHUNK_SIZE)
        if not chunk:
            return
        if text_writer and isinstance(chunk, (bytes, bytearray)):
            chunk = bytes(chunk).decode("utf-8", errors="replace")
        elif not text_writer and isinstance(chunk, str):
            chunk = chunk.encode()
        writer.write(chunk)


class Setup:
    """Builds the lifecycle, buildpacks and source, then creates the staging container.

    *client* provides ``image_pull(ref)`` returning a readable log stream,
    ``container_inspect(name)`` returning a mapping with ``"Id"`` or raising
    :class:`NotFoundError`, ``container_remove(container_id, force)``,
    ``container_create(config, host_config, name)`` returning the new
    container's id, and ``copy_to_container(container_id, dst_path, content)``.
    *lifecycle* provides ``build(source_uri, workspace)``; *buildpacks* provides
    ``build(workspace, name)``, ``order()`` and ``with_buildpacks(*names)``;
    *archiver* provides ``with_prefix(prefix)`` and ``compress(input, output)``;
    *networks* provides ``create(name, driver, internal)`` and
    ``connect(container_id, name)``.
    """

    def __init__(self, client, lifecycle, buildpacks, archiver, networks, workspace, stack):
        self._client = client
        self._lifecycle = lifecycle
        self._buildpacks = buildpacks
        self._archiver = archiver
        self._networks = networks
        self._workspace = workspace
        self._stack = stack
        self._env = {}
        self._services = {}
        self._disconnect_internet = False

    def run(self, logs, name, path):
        """Prepare the staging container for app *name* at *path* and return its id."""
        with _failure("failed to build lifecycle"):
            lifecycle = self._lifecycle.build(
                BUILDPACK_APP_LIFECYCLE_REPO_URL,
                os.path.join(self._workspace, "lifecycle"),
            )

        with _failure("failed to build buildpacks"):
            buildpacks = self._buildpacks.build(
                os.path.join(self._workspace, "buildpacks"), name
            )

        source = os.path.join(self._workspace, "source", f"{name}.tar.gz")
        with _failure("failed to archive source code"):
            self._archiver.with_prefix("/tmp/app").compress(path, source)

        image = f"cloudfoundry/{self._stack}:latest"
        with _failure("failed to pull base image"):
            pull_logs = self._client.image_pull(image)
        try:
            with _failure("failed to copy image pull logs"):
                _copy_stream(pull_logs, logs)
        finally:
            close = getattr(pull_logs, "close", None)
            if close is not None:
                close()

        with _failure("failed to create network"):
            self._networks.create(INTERNAL_NETWORK_NAME, "bridge", True)

        env = [f"CF_STACK={self._stack}"]
        env.extend(f"{key}={value}" for key, value in self._env.items())
        env.append(services_env(name, self._services))

        with _failure("failed to determine buildpack ordering"):
            order, skip_detect = self._buildpacks.order()

        self._remove_conflicting(name)

        config = {
            "Image": image,
            "Cmd": [
                "/tmp/lifecycle/builder",
                "--buildArtifactsCacheDir=/tmp/cache",
                "--buildDir=/tmp/app",
                f"--buildpackOrder={order}",
                "--buildpacksDir=/tmp/buildpacks",
                "--outputBuildArtifactsCache=/tmp/output-cache",
                "--outputDroplet=/tmp/droplet",
                "--outputMetadata=/tmp/result.json",
                f"--skipDetect={'true' if skip_detect else 'false'}",
            ],
            "User": "vcap",
            "Env": env,
            "WorkingDir": "/home/vcap",
        }
        host_config = {"NetworkMode": INTERNAL_NETWORK_NAME}

        with _failure("failed to create staging container"):
            container_id = self._client.container_create(config, host_config, name)

        if not self._disconnect_internet:
            with _failure("failed to connect container to network"):
                self._networks.connect(container_id, BRIDGE_NETWORK_NAME)

        tarballs = [lifecycle, buildpacks, source]
        build_cache = os.path.join(self._workspace, "build-cache", f"{name}.tar.gz")
        if os.path.exists(build_cache):
            tarballs.append(build_cache)

        for tarball in tarballs:
            with _failure("failed to open tarball"):
                handle = open(tarball, "rb")
            with handle, _failure("failed to copy tarball to container"):
                self._client.copy_to_container(container_id, "/", handle)

        return container_id

    def with_buildpacks(self, *buildpacks):
        """Return a setup that stages with only the named buildpacks."""
        changed = copy.copy(self)
        changed._buildpacks = self._buildpacks.with_buildpacks(*buildpacks)
        return changed

    def with_stack(self, stack):
        """Return a setup that stages on *stack*."""
        changed = copy.copy(self)
        changed._stack = stack
        return changed

    def with_env(self, env):
        """Return a setup that adds *env* to the staging environment."""
        changed = copy.copy(self)
        changed._env = dict(env)
        return changed

    def without_internet_access(self):
        """Return a setup whose container is not connected to the bridge network."""
        changed = copy.copy(self)
        changed._disconnect_internet = True
        return changed

    def with_services(self, services):
        """Return a setup that binds *services* through VCAP_SERVICES."""
        changed = copy.copy(self)
        changed._services = dict(services)
        return changed

    def _remove_conflicting(self, name):
        try:
            existing = self._client.container_inspect(name)
        except Exception as err:
            if _is_not_found(err):
                return
            raise SwitchbladeError(
                f"failed to inspect staging container: {err}"
            ) from err

        with _failure("failed to remove conflicting container"):
            self._client.container_remove(existing["Id"], force=True)