"""Tests for registry metadata sources."""

from __future__ import annotations

import json
import subprocess

import httpx
import pytest

from cargo_features.core.errors import RegistryError
from cargo_features.manifest.registry import (
    CargoMetadataRegistry,
    SparseIndexRegistry,
    index_path,
    is_compatible,
    parse_version,
    requirement_spec,
)

METADATA = {
    "packages": [
        {
            "name": "serde",
            "version": "1.0.210",
            "features": {"default": ["std"], "std": [], "derive": ["serde_derive"]},
            "dependencies": [
                {"name": "serde_derive", "optional": True},
                {"name": "serde_core", "optional": False},
            ],
        },
        {"name": "rand", "version": "0.7.3", "features": {"std": []}, "dependencies": []},
        {"name": "rand", "version": "0.8.5", "features": {"std": [], "small_rng": []}, "dependencies": []},
        {
            "name": "reqwest",
            "version": "0.12.7",
            "features": {"json": ["dep:serde_json"]},
            "dependencies": [{"name": "serde_json", "rename": "json_crate", "optional": True}],
        },
    ]
}


class FakeRunner:
    def __init__(self, returncode=0, stdout="", stderr="", error=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls = []

    def __call__(self, command, **kwargs):
        self.calls.append(command)
        if self.error is not None:
            raise self.error
        return subprocess.CompletedProcess(command, self.returncode, stdout=self.stdout, stderr=self.stderr)


@pytest.mark.parametrize(
    ("name", "expected"),
    [("a", "1/a"), ("ab", "2/ab"), ("syn", "3/s/syn"), ("serde", "se/rd/serde"), ("Tokio", "to/ki/tokio")],
)
def test_index_path(name, expected):
    assert index_path(name) == expected


def test_parse_version_orders_prereleases_by_identifier():
    assert parse_version("1.0.0-alpha") < parse_version("1.0.0-rc.1") < parse_version("1.0.0") < parse_version("1.0.1")
    assert parse_version("1.0.0-beta.2") < parse_version("1.0.0-beta.11")
    assert parse_version("garbage") is None


@pytest.mark.parametrize(
    ("constraint", "version", "expected"),
    [
        ("1.2", "1.9.0", True),
        ("1.2", "1.1.0", False),
        ("1.2", "2.0.0", False),
        ("^1.2", "1.2.0", True),
        ("0.4", "0.4.22", True),
        ("0.4", "0.5.0", False),
        ("^0.0.3", "0.0.3", True),
        ("^0.0.3", "0.0.4", False),
        ("~1.2", "1.2.9", True),
        ("~1.2", "1.3.0", False),
        ("=1.2.3", "1.2.3", True),
        ("=1.2.3", "1.2.4", False),
        (">=1, <2", "1.5.0", True),
        (">=1, <2", "5.0.0", False),
        (">=1.2, <1.5", "1.4.9", True),
        (">=1.2, <1.5", "2.0.0", False),
        (">=1.2,<1.5", "1.1.0", False),
        ("<0.3", "0.2.9", True),
        ("<0.3", "0.3.0", False),
        ("1.2.*", "1.2.7", True),
        ("1.2.*", "1.3.0", False),
        (None, "1.0.0", True),
        ("*", "7.0.0", True),
        (None, "1.0.0-beta", False),
        ("^1.0", "1.1.0-beta", False),
        ("1.0", "not-a-version", False),
        ("1", "1.0.0-rc.1", False),
        ("1.0.0-rc.1", "1.0.0-rc.1", True),
    ],
)
def test_is_compatible(constraint, version, expected):
    assert is_compatible(constraint, version) is expected


@pytest.mark.parametrize("constraint", ["latest", "~>1.0", "=>1.0"])
def test_unsupported_requirement(constraint):
    with pytest.raises(RegistryError, match="unsupported version requirement"):
        requirement_spec(constraint)


class TestCargoMetadataRegistry:
    def _registry(self, tmp_path, **kwargs):
        runner = FakeRunner(**kwargs)
        return CargoMetadataRegistry(tmp_path / "Cargo.toml", runner=runner), runner

    def test_resolves_features_and_optional_dependencies(self, tmp_path):
        registry, runner = self._registry(tmp_path, stdout=json.dumps(METADATA))

        entry = registry.resolve("serde", "1.0")

        assert entry.version == "1.0.210"
        assert entry.default_features == ["std"]
        assert entry.implies_map["derive"] == ["serde_derive"]
        assert entry.optional_dependencies == ["serde_derive"]
        assert runner.calls[0][:4] == ["cargo", "metadata", "--format-version", "1"]

    def test_runs_cargo_once(self, tmp_path):
        registry, runner = self._registry(tmp_path, stdout=json.dumps(METADATA))
        registry.resolve("serde", "1")
        registry.resolve("rand", "0.8")
        assert len(runner.calls) == 1

    def test_picks_version_matching_constraint(self, tmp_path):
        registry, _ = self._registry(tmp_path, stdout=json.dumps(METADATA))
        assert registry.resolve("rand", "0.7").version == "0.7.3"
        assert registry.resolve("rand", "0.8").version == "0.8.5"
        with pytest.raises(RegistryError, match="no version of rand"):
            registry.resolve("rand", "0.6")

    def test_range_requirement_picks_newest_in_range(self):
        registry = CargoMetadataRegistry.from_payload(METADATA)
        assert registry.resolve("rand", ">=0.7, <0.8").version == "0.7.3"
        assert registry.resolve("rand", ">=0.7").version == "0.8.5"
        with pytest.raises(RegistryError, match="no version of rand"):
            registry.resolve("rand", ">=0.9, <1")

    def test_optional_dependency_uses_rename(self):
        registry = CargoMetadataRegistry.from_payload(METADATA)
        assert registry.resolve("reqwest", "0.12").optional_dependencies == ["json_crate"]

    def test_unknown_package(self):
        registry = CargoMetadataRegistry.from_payload(METADATA)
        with pytest.raises(RegistryError, match="not found in cargo metadata"):
            registry.resolve("tokio", "1")

    def test_cargo_failure(self, tmp_path):
        registry, _ = self._registry(tmp_path, returncode=101, stderr="warning: x\nerror: could not find `Cargo.toml`\n")
        with pytest.raises(RegistryError, match="could not find"):
            registry.resolve("serde", "1")

    def test_cargo_missing(self, tmp_path):
        registry, _ = self._registry(tmp_path, error=FileNotFoundError("cargo"))
        with pytest.raises(RegistryError, match="not found on PATH"):
            registry.resolve("serde", "1")

    def test_invalid_json(self, tmp_path):
        registry, _ = self._registry(tmp_path, stdout="{not json")
        with pytest.raises(RegistryError, match="invalid JSON"):
            registry.resolve("serde", "1")


def _record(version, features=None, yanked=False, deps=(), features2=None):
    record = {"name": "serde", "vers": version, "features": features or {}, "deps": list(deps), "yanked": yanked}
    if features2 is not None:
        record["features2"] = features2
    return json.dumps(record)


SERDE_INDEX = "\n".join(
    [
        _record("0.9.15", {"std": []}),
        _record("1.0.100", {"std": []}),
        _record(
            "1.0.210",
            {"default": ["std"], "std": [], "derive": ["serde_derive"]},
            deps=[{"name": "serde_derive", "optional": True}, {"name": "serde_core", "optional": False}],
            features2={"unstable": ["dep:serde_derive"]},
        ),
        _record("1.0.211", {"std": []}, yanked=True),
        "",
    ]
)


class TestSparseIndexRegistry:
    def _registry(self, handler):
        requests = []

        def recording(request):
            requests.append(request)
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(recording))
        return SparseIndexRegistry("https://index.test/", client=client), requests

    def test_resolves_newest_compatible_release(self):
        registry, requests = self._registry(lambda request: httpx.Response(200, text=SERDE_INDEX))

        entry = registry.resolve("serde", "1")

        assert entry.version == "1.0.210"
        assert entry.default_features == ["std"]
        assert entry.implies_map["unstable"] == ["dep:serde_derive"]
        assert entry.optional_dependencies == ["serde_derive"]
        assert str(requests[0].url) == "https://index.test/se/rd/serde"

    def test_prereleases_need_a_prerelease_requirement(self):
        index = "\n".join([SERDE_INDEX, _record("1.1.0-rc.1", {"std": []})])
        registry, _ = self._registry(lambda request: httpx.Response(200, text=index))
        assert registry.resolve("serde", "1").version == "1.0.210"
        assert registry.resolve("serde", "1.1.0-rc.1").version == "1.1.0-rc.1"

    def test_records_are_cached(self):
        registry, requests = self._registry(lambda request: httpx.Response(200, text=SERDE_INDEX))
        registry.resolve("serde", "1")
        assert registry.resolve("serde", "0.9").version == "0.9.15"
        assert len(requests) == 1

    def test_not_found(self):
        registry, _ = self._registry(lambda request: httpx.Response(404))
        with pytest.raises(RegistryError, match="not found in registry index"):
            registry.resolve("serde", "1")

    def test_server_error(self):
        registry, _ = self._registry(lambda request: httpx.Response(500))
        with pytest.raises(RegistryError, match="Registry index error for serde: 500"):
            registry.resolve("serde", "1")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        registry, _ = self._registry(handler)
        with pytest.raises(RegistryError, match="Cannot reach registry index"):
            registry.resolve("serde", "1")

    def test_only_yanked_releases(self):
        registry, _ = self._registry(lambda request: httpx.Response(200, text=_record("1.0.0", yanked=True)))
        with pytest.raises(RegistryError, match="no published releases"):
            registry.resolve("serde", "1")

    def test_malformed_record(self):
        registry, _ = self._registry(lambda request: httpx.Response(200, text="{broken"))
        with pytest.raises(RegistryError, match="Malformed index record"):
            registry.resolve("serde", "1")
