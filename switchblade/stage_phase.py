"""The phase that runs staging in a container and collects what it produced."""

import contextlib
import io
import json
import os
import tarfile
from contextlib import contextmanager

from .errors import SwitchbladeError
from .streams import demultiplex

WAIT_CONDITION_NOT_RUNNING = "not-running"
CACHE_PREFIX = "/tmp/cache"


@contextmanager
def _failure(message):
    try:
        yield
    except Exception as err:
        raise SwitchbladeError(f"{message}: {err}") from err


@contextmanager
def _closing(stream):
    try:
        yield stream
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()


def _members(stream, member_name, failure):
    """Return the payloads of every tar entry in *stream* named *member_name*."""
    try:
        data = stream.read()
        if not data:
            return []
        payloads = []
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as archive:
            for member in archive:
                if member.name != member_name:
                    continue
                reader = archive.extractfile(member)
                payloads.append(reader.read() if reader is not None else b"")
        return payloads
    except Exception as err:
        raise SwitchbladeError(f"{failure}: {err}") from err


class Stage:
    """Runs the staging container and stores its droplet and build cache.

    *client* provides ``container_start(container_id)``,
    ``container_wait(container_id, condition)`` returning the exit status,
    ``container_logs(container_id, show_stdout, show_stderr)`` returning a
    framed log stream, ``copy_from_container(container_id, src_path)``
    returning a readable tar stream, and ``container_remove(container_id,
    force)``. *archiver* provides ``with_prefix(prefix)`` and
    ``compress(input, output)``.
    """

    def __init__(self, client, archiver, workspace):
        self._client = client
        self._archiver = archiver
        self._workspace = workspace

    def run(self, logs, container_id, name):
        """Stage the app in *container_id* and return its web start command."""
        with _failure("failed to start container"):
            self._client.container_start(container_id)

        with _failure("failed to wait on container"):
            status = self._client.container_wait(
                container_id, WAIT_CONDITION_NOT_RUNNING
            )
        status = status or 0

        with _failure("failed to fetch container logs"):
            container_logs = self._client.container_logs(
                container_id, show_stdout=True, show_stderr=True
            )
        with _closing(container_logs), _failure("failed to copy container logs"):
            demultiplex(container_logs, logs, logs)

        if status != 0:
            with _failure("failed to remove container"):
                self._client.container_remove(container_id, force=True)
            raise SwitchbladeError(
                "App staging failed: container exited with non-zero status code "
                f"({status})"
            )

        self._collect_droplet(container_id, name)
        self._collect_build_cache(container_id, name)
        command = self._web_command(container_id)

        with _failure("failed to remove container"):
            self._client.container_remove(container_id, force=True)

        return command

    def _collect_droplet(self, container_id, name):
        with _failure("failed to copy droplet from container"):
            droplet = self._client.copy_from_container(container_id, "/tmp/droplet")

        with _closing(droplet):
            directory = os.path.join(self._workspace, "droplets")
            with _failure("failed to create droplets directory"):
                os.makedirs(directory, exist_ok=True)

            with _failure("failed to create droplet tarball"):
                handle = open(os.path.join(directory, f"{name}.tar.gz"), "wb")

            with handle:
                payloads = _members(
                    droplet, "droplet", "failed to retrieve droplet from tarball"
                )
                with _failure("failed to copy droplet from tarball"):
                    for payload in payloads:
                        handle.write(payload)

    def _collect_build_cache(self, container_id, name):
        with _failure("failed to copy build cache from container"):
            cache = self._client.copy_from_container(container_id, "/tmp/output-cache")

        with _closing(cache):
            directory = os.path.join(self._workspace, "build-cache")
            with _failure("failed to create build-cache directory"):
                os.makedirs(directory, exist_ok=True)

            payloads = _members(
                cache, "output-cache", "failed to retrieve build cache from tarball"
            )

            cache_path = os.path.join(directory, name)
            output = os.path.join(directory, f"{name}.tar.gz")
            try:
                for payload in payloads:
                    with _failure("failed to create build-cache path"):
                        handle = open(cache_path, "wb")
                    with handle, _failure("failed to copy build cache"):
                        handle.write(payload)

                    with _failure("failed to recompress build cache"):
                        self._archiver.with_prefix(CACHE_PREFIX).compress(
                            cache_path, output
                        )
            finally:
                if os.path.isfile(cache_path):
                    with contextlib.suppress(OSError):
                        os.remove(cache_path)

    def _web_command(self, container_id):
        with _failure("failed to copy result.json from container"):
            result = self._client.copy_from_container(container_id, "/tmp/result.json")

        with _closing(result):
            payloads = _members(
                result, "result.json", "failed to retrieve result.json from tarball"
            )

        with _failure("failed to parse result.json"):
            content = json.loads(b"".join(payloads).decode("utf-8"))

        if not isinstance(content, dict):
            raise SwitchbladeError(
                "failed to parse result.json: expected an object at the top level"
            )

        command = ""
        for process in content.get("processes") or []:
            if isinstance(process, dict) and process.get("type") == "web":
                command = process.get("command", "")
        return command