# switchblade

Stage and run applications with buildpacks inside local containers, so that
integration tests can deploy an app, reach it over HTTP and read its logs.

The package does not talk to a container engine itself. You pass in a client
object, and the phases call it to pull images, create and start containers,
copy tarballs in and out, and manage networks. The archiver, the buildpack
cache and the lifecycle builder are passed in the same way. Each class's
docstring lists the methods it expects of them.

## Installation

```
pip install .
```

To run the test suite, install the `test` extra and run pytest:

```
pip install ".[test]"
pytest
```

## Pieces

- `switchblade.buildpacks.BuildpacksRegistry(api, token)` lists the default
  buildpacks (`staticfile_buildpack`, `java_buildpack`, ... `binary_buildpack`)
  as `Buildpack(name, uri)` values. It resolves each one to the `.zip` asset of
  the latest release at `<api>/repos/cloudfoundry/<name>/releases/latest` and
  sends the token as a bearer `Authorization` header. Lookups are cached.
  `override(*buildpacks)` replaces an entry or adds a new one, and added
  entries are listed after the defaults.
- `switchblade.buildpacks_manager.BuildpacksManager(archiver, cache, registry)`
  fetches each buildpack through `cache.fetch(uri)`. A fetched buildpack can be
  a zip stream or a local directory. The manager unpacks or copies each one
  into `<workspace>/<name>/<md5 of buildpack name>` and archives the lot into
  `<workspace>/<name>.tar.gz` under the prefix `/tmp/buildpacks`. `order()`
  returns the comma-separated buildpack order and whether detection should be
  skipped. `with_buildpacks(*names)` returns a manager limited to the named
  buildpacks, in that order, with detection skipped.
- `switchblade.initialize.Initialize(registry)` passes buildpack overrides on
  to a registry with `run(buildpacks)`.
- `switchblade.network_manager.NetworkManager(client)` creates, connects and
  deletes named container networks. Creating a network that already exists
  does nothing. Deleting a missing network, or one that the client refuses to
  remove with `ForbiddenError`, does nothing either.
- `switchblade.setup_phase.Setup` prepares the staging container. It builds the
  lifecycle, the buildpacks and the source archive. It pulls
  `cloudfoundry/<stack>:latest` into the logs and creates the
  `switchblade-internal` network. It removes any container with the app's name
  and creates the staging container. It connects that container to the
  `bridge` network and copies the tarballs in, including
  `<workspace>/build-cache/<name>.tar.gz` when that file exists.
- `switchblade.stage_phase.Stage` runs staging and copies the container logs.
  It collects the droplet into `<workspace>/droplets/<name>.tar.gz` and the
  build cache into `<workspace>/build-cache/<name>.tar.gz`. It returns the
  `web` process command from `result.json` and removes the container.
- `switchblade.start_phase.Start` runs the droplet with port 8080 published
  and returns its external URL (the `0.0.0.0` binding) and its internal URL on
  `switchblade-internal`.

Helpers:

- `switchblade.archives.extract_zip(source, destination, strip_components=0)`
  extracts a zip archive given as bytes or a binary stream. It refuses entries
  that point outside the destination.
- `switchblade.environment.services_env(name, services)` builds the
  `VCAP_SERVICES=...` environment entry. Each service becomes a user-provided
  binding named `<name>-<key>`, in key order.
- `switchblade.streams.demultiplex(source, stdout, stderr)` splits a framed
  container log stream into its stdout and stderr parts.

## Example

```python
import io

from switchblade.setup_phase import Setup
from switchblade.stage_phase import Stage
from switchblade.start_phase import Start

logs = io.StringIO()

setup = Setup(client, lifecycle, buildpacks, archiver, networks, workspace, "cflinuxfs4")
container_id = setup.with_env({"BP_DEBUG": "true"}).run(logs, "my-app", "/path/to/app")

command = Stage(client, archiver, workspace).run(logs, container_id, "my-app")

external_url, internal_url = Start(client, networks, workspace, "cflinuxfs4").run(
    logs, "my-app", command
)
```

`Setup` also offers `with_buildpacks(*names)`, `with_stack(stack)`,
`with_services(services)` and `without_internet_access()`. `Start` offers
`with_stack`, `with_env` and `with_services`. Each of these returns a
configured copy and leaves the original unchanged.

## What it does not do

The package does not build the lifecycle `builder` and `launcher` binaries.
`Setup` takes a `lifecycle` object whose `build(source_uri, workspace)` returns
the path of a lifecycle tarball. `Start` expects that tarball at
`<workspace>/lifecycle/lifecycle.tar.gz`. The package also contains no
container engine client, no tarball archiver, no buildpack cache and no
command-line tool. You provide these yourself.

## Errors

Failures raise `switchblade.errors.SwitchbladeError`, with a message that says
which step failed. The client signals a missing container with
`NotFoundError`. It signals a network that cannot be removed while containers
are attached with `ForbiddenError`. A staging container that exits with a
non-zero status raises `SwitchbladeError` after the container has been removed.