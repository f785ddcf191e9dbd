from types import SimpleNamespace

import pytest

from switchblade.errors import ForbiddenError, SwitchbladeError
from switchblade.network_manager import NetworkManager

NETWORKS = [
    SimpleNamespace(name="bridge", id="bridge-network-id"),
    SimpleNamespace(name="some-network", id="some-network-id"),
    SimpleNamespace(name="other-network", id="other-network-id"),
]


class FakeClient:
    def __init__(self, networks=()):
        self.networks = list(networks)
        self.list_calls = 0
        self.list_error = None
        self.created = []
        self.create_error = None
        self.connected = []
        self.connect_error = None
        self.removed = []
        self.remove_error = None

    def network_list(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return self.networks

    def network_create(self, name, driver, internal):
        self.created.append((name, driver, internal))
        if self.create_error is not None:
            raise self.create_error

    def network_connect(self, network_id, container_id, config):
        self.connected.append((network_id, container_id))
        if self.connect_error is not None:
            raise self.connect_error

    def network_remove(self, network_id):
        self.removed.append(network_id)
        if self.remove_error is not None:
            raise self.remove_error


def test_create_creates_network():
    client = FakeClient()

    NetworkManager(client).create("some-network", "some-driver", True)

    assert client.created == [("some-network", "some-driver", True)]


def test_create_skips_existing_network():
    client = FakeClient(NETWORKS)

    NetworkManager(client).create("some-network", "some-driver", True)

    assert client.list_calls == 1
    assert client.created == []


def test_create_list_failure():
    client = FakeClient()
    client.list_error = RuntimeError("networks could not be listed")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).create("some-network", "some-driver", True)

    assert str(excinfo.value) == "failed to list networks: networks could not be listed"


def test_create_failure():
    client = FakeClient()
    client.create_error = RuntimeError("network could not be created")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).create("some-network", "some-driver", True)

    assert str(excinfo.value) == "failed to create network: network could not be created"


def test_connect_connects_to_named_network():
    client = FakeClient(NETWORKS)

    NetworkManager(client).connect("some-container-id", "other-network")

    assert client.list_calls == 1
    assert client.connected == [("other-network-id", "some-container-id")]


def test_connect_missing_network():
    client = FakeClient(NETWORKS)

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).connect("some-container-id", "missing-network")

    assert str(excinfo.value) == (
        'failed to connect container to network: no such network "missing-network"'
    )
    assert client.list_calls == 1
    assert client.connected == []


def test_connect_list_failure():
    client = FakeClient(NETWORKS)
    client.list_error = RuntimeError("networks could not be listed")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).connect("some-container-id", "some-network")

    assert str(excinfo.value) == "failed to list networks: networks could not be listed"


def test_connect_failure():
    client = FakeClient(NETWORKS)
    client.connect_error = RuntimeError("network could not be connected")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).connect("some-container-id", "some-network")

    assert str(excinfo.value) == (
        "failed to connect container to network: network could not be connected"
    )


def test_delete_removes_network():
    client = FakeClient(NETWORKS)

    NetworkManager(client).delete("some-network")

    assert client.list_calls == 1
    assert client.removed == ["some-network-id"]


def test_delete_missing_network_is_ignored():
    client = FakeClient(NETWORKS)

    NetworkManager(client).delete("missing-network")

    assert client.list_calls == 1
    assert client.removed == []
    assert client.connected == []


def test_delete_forbidden_is_ignored():
    client = FakeClient(NETWORKS)
    client.remove_error = ForbiddenError("containers still attached")

    result = NetworkManager(client).delete("some-network")

    assert result is None
    assert client.removed == ["some-network-id"]


def test_delete_list_failure():
    client = FakeClient(NETWORKS)
    client.list_error = RuntimeError("networks could not be listed")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).delete("some-network")

    assert str(excinfo.value) == "failed to list networks: networks could not be listed"


def test_delete_failure():
    client = FakeClient(NETWORKS)
    client.remove_error = RuntimeError("network could not be removed")

    with pytest.raises(SwitchbladeError) as excinfo:
        NetworkManager(client).delete("some-network")

    assert str(excinfo.value) == "failed to delete network: network could not be removed"