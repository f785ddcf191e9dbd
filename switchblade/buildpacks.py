"""The registry of buildpacks available to staging."""

import threading
from dataclasses import dataclass

import requests

from .errors import SwitchbladeError

DEFAULT_BUILDPACKS = (
    "staticfile",
    "java",
    "ruby",
    "dotnet-core",
    "nodejs",
    "go",
    "python",
    "php",
    "nginx",
    "r",
    "binary",
)


def _canonical_name(short_name):
    return f"{short_name}-buildpack".replace("-", "_")


@dataclass(frozen=True)
class Buildpack:
    """A named buildpack and the location it is fetched from."""

    name: str
    uri: str = ""


class BuildpacksRegistry:
    """Resolves the default buildpacks to their latest release downloads.

    Lookups are cached, and overrides replace or extend the default list.
    """

    def __init__(self, api, token):
        self._api = api
        self._token = token
        self._index = {}
        self._lock = threading.Lock()
        self._session = requests.Session()

    def list(self):
        """Return the default buildpacks followed by any extra overrides."""
        buildpacks = []
        for short_name in DEFAULT_BUILDPACKS:
            repository = f"{short_name}-buildpack"
            name = repository.replace("-", "_")

            with self._lock:
                uri = self._index.get(name)
            if uri is None:
                uri = self._latest_zip(repository)
                with self._lock:
                    self._index[name] = uri

            buildpacks.append(Buildpack(name=name, uri=uri))

        defaults = {_canonical_name(short_name) for short_name in DEFAULT_BUILDPACKS}
        with self._lock:
            extras = [
                Buildpack(name=name, uri=uri)
                for name, uri in self._index.items()
                if name not in defaults
            ]

        return buildpacks + extras

    def override(self, *buildpacks):
        """Use the given locations instead of looking the buildpacks up."""
        with self._lock:
            for buildpack in buildpacks:
                self._index[buildpack.name] = buildpack.uri

    def _latest_zip(self, repository):
        url = f"{self._api}/repos/cloudfoundry/{repository}/releases/latest"
        try:
            request = requests.Request(
                "GET", url, headers={"Authorization": f"Bearer {self._token}"}
            ).prepare()
        except (requests.RequestException, ValueError) as err:
            raise SwitchbladeError(f"failed to create request: {err}") from err

        try:
            response = self._session.send(request)
        except requests.RequestException as err:
            raise SwitchbladeError(f"failed to complete request: {err}") from err

        with response:
            if response.status_code != requests.codes.ok:
                raise SwitchbladeError(
                    f"received unexpected response status: {_dump(response)}"
                )
            try:
                release = response.json()
            except ValueError as err:
                raise SwitchbladeError(f"failed to parse response json: {err}") from err

        if not isinstance(release, dict):
            raise SwitchbladeError(
                "failed to parse response json: expected an object at the top level"
            )

        for asset in release.get("assets") or []:
            if str(asset.get("name", "")).endswith(".zip"):
                return asset.get("browser_download_url", "")
        return ""


def _dump(response):
    lines = [f"HTTP/1.1 {response.status_code} {response.reason}"]
    lines.extend(f"{key}: {value}" for key, value in response.headers.items())
    return "\r\n".join(lines) + "\r\n\r\n" + response.text