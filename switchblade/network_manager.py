"""Creation, connection and removal of container networks."""

import json
import threading

from .errors import ForbiddenError, SwitchbladeError


def _is_forbidden(err):
    while err is not None:
        if isinstance(err, ForbiddenError):
            return True
        err = err.__cause__
    return False


class NetworkManager:
    """Manages networks by name through a container engine client.

    The client provides ``network_list()`` returning objects with ``name`` and
    ``id``, ``network_create(name, driver, internal)``,
    ``network_connect(network_id, container_id, config)`` and
    ``network_remove(network_id)``.
    """

    def __init__(self, client):
        self._client = client
        self._lock = threading.Lock()

    def create(self, name, driver, internal):
        """Create the named network unless it already exists."""
        with self._lock:
            if self._find(name) is not None:
                return
            try:
                self._client.network_create(name, driver=driver, internal=internal)
            except Exception as err:
                raise SwitchbladeError(f"failed to create network: {err}") from err

    def connect(self, container_id, name):
        """Attach the container to the named network."""
        with self._lock:
            network = self._find(name)
            if network is None:
                raise SwitchbladeError(
                    "failed to connect container to network: "
                    f"no such network {json.dumps(name)}"
                )
            try:
                self._client.network_connect(network.id, container_id, None)
            except Exception as err:
                raise SwitchbladeError(
                    f"failed to connect container to network: {err}"
                ) from err

    def delete(self, name):
        """Remove the named network; a missing or still-used network is left alone."""
        with self._lock:
            network = self._find(name)
            if network is None:
                return
            try:
                self._client.network_remove(network.id)
            except Exception as err:
                if _is_forbidden(err):
                    return
                raise SwitchbladeError(f"failed to delete network: {err}") from err

    def _find(self, name):
        try:
            networks = self._client.network_list()
        except Exception as err:
            raise SwitchbladeError(f"failed to list networks: {err}") from err
        return next((network for network in networks if network.name == name), None)