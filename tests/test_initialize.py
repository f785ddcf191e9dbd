from switchblade.buildpacks import Buildpack
from switchblade.initialize import Initialize


class FakeRegistry:
    def __init__(self):
        self.received = None
        self.calls = 0

    def override(self, *buildpacks):
        self.calls += 1
        self.received = list(buildpacks)


def test_run_overrides_registry_buildpacks():
    registry = FakeRegistry()

    Initialize(registry).run(
        [
            Buildpack(name="some-buildpack-name", uri="some-buildpack-uri"),
            Buildpack(name="other-buildpack-name", uri="other-buildpack-uri"),
        ]
    )

    assert registry.calls == 1
    assert registry.received == [
        Buildpack(name="some-buildpack-name", uri="some-buildpack-uri"),
        Buildpack(name="other-buildpack-name", uri="other-buildpack-uri"),
    ]