"""The phase that starts a staged droplet in a running container."""

import copy
import json
import os
from contextlib import contextmanager

from .environment import services_env
from .errors import SwitchbladeError
from .setup_phase import BRIDGE_NETWORK_NAME, INTERNAL_NETWORK_NAME

APP_PORT = "8080/tcp"


@contextmanager
def _failure(message):
    try:
        yield
    except Exception as err:
        raise SwitchbladeError(f"{message}: {err}") from err


def _application_env(name):
    quoted = json.dumps(name, ensure_ascii=False)
    return (
        f'VCAP_APPLICATION={{"application_name":{quoted},"name":{quoted},'
        '"process_type":"web","limits":{"mem":1024}}'
    )


class Start:
    """Creates and starts the container that runs a staged application.

    *client* provides ``container_create(config, host_config, name)`` returning
    the new container's id, ``copy_to_container(container_id, dst_path,
    content)``, ``container_start(container_id)`` and
    ``container_inspect(container_id)`` returning a mapping shaped like the
    engine's inspect document. *networks* provides
    ``connect(container_id, name)``.
    """

    def __init__(self, client, networks, workspace, stack):
        self._client = client
        self._networks = networks
        self._workspace = workspace
        self._stack = stack
        self._env = {}
        self._services = {}

    def run(self, logs, name, command):
        """Start app *name* with *command*; return its external and internal URLs."""
        env = [
            "LANG=en_US.UTF-8",
            "MEMORY_LIMIT=1024m",
            "PORT=8080",
            _application_env(name),
            "VCAP_PLATFORM_OPTIONS={}",
        ]
        env.extend(f"{key}={value}" for key, value in self._env.items())
        env.append(services_env(name, self._services))

        config = {
            "Image": f"cloudfoundry/{self._stack}:latest",
            "Cmd": ["/tmp/lifecycle/launcher", "app", command, ""],
            "User": "vcap",
            "Env": env,
            "WorkingDir": "/home/vcap",
            "ExposedPorts": {APP_PORT: {}},
        }
        host_config = {
            "PublishAllPorts": True,
            "NetworkMode": INTERNAL_NETWORK_NAME,
        }

        with _failure("failed to create running container"):
            container_id = self._client.container_create(config, host_config, name)

        with _failure("failed to connect container to network"):
            self._networks.connect(container_id, BRIDGE_NETWORK_NAME)

        self._copy(
            container_id,
            os.path.join(self._workspace, "lifecycle", "lifecycle.tar.gz"),
            "/",
            "lifecycle",
        )
        self._copy(
            container_id,
            os.path.join(self._workspace, "droplets", f"{name}.tar.gz"),
            "/home/vcap/",
            "droplet",
        )

        with _failure("failed to start container"):
            self._client.container_start(container_id)

        with _failure("failed to inspect container"):
            inspection = self._client.container_inspect(container_id)

        settings = (inspection or {}).get("NetworkSettings") or {}

        external_url = ""
        for binding in (settings.get("Ports") or {}).get(APP_PORT) or []:
            if binding.get("HostIp") == "0.0.0.0":
                external_url = f"http://{binding['HostIp']}:{binding.get('HostPort', '')}"

        internal_url = ""
        network = (settings.get("Networks") or {}).get(INTERNAL_NETWORK_NAME)
        if network is not None:
            internal_url = f"http://{network.get('IPAddress', '')}:8080"

        return external_url, internal_url

    def with_stack(self, stack):
        """Return a start phase that runs on *stack*."""
        changed = copy.copy(self)
        changed._stack = stack
        return changed

    def with_env(self, env):
        """Return a start phase that adds *env* to the container environment."""
        changed = copy.copy(self)
        changed._env = dict(env)
        return changed

    def with_services(self, services):
        """Return a start phase that binds *services* through VCAP_SERVICES."""
        changed = copy.copy(self)
        changed._services = dict(services)
        return changed

    def _copy(self, container_id, path, destination, label):
        with _failure(f"failed to open {label}"):
            handle = open(path, "rb")
        with handle, _failure(f"failed to copy {label} into container"):
            self._client.copy_to_container(container_id, destination, handle)