"""Shared test fixtures for lambdapromote."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from lambdapromote.config import PromoteConfig
from lambdapromote.core.builders import SourceCopyBuilder
from lambdapromote.core.content_store import LocalContentStore
from lambdapromote.core.errors import BuildFailed, UploadFailed
from lambdapromote.core.metadata import MetadataWriter
from lambdapromote.core.publisher import ArtifactPublisher
from lambdapromote.core.versioning import LogicalClock
from lambdapromote.models.artifacts import ObjectHead
from lambdapromote.models.units import UnitDescriptor


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeHistory:
    """In-memory revision history.

    ``changes`` maps ``(base, head)`` to the list of modified paths.
    """

    def __init__(
        self,
        revisions: set[str] | None = None,
        changes: dict[tuple[str, str], list[str]] | None = None,
    ) -> None:
        self.revisions = set(revisions or set())
        self.changes = dict(changes or {})
        self.queries: list[tuple[str, str, str]] = []

    def revision_exists(self, revision: str) -> bool:
        return revision in self.revisions

    def changed_paths(self, base: str, head: str, subtree: str) -> list[str]:
        self.queries.append((base, head, subtree))
        prefix = "" if subtree == "." else subtree.rstrip("/") + "/"
        return [
            p for p in self.changes.get((base, head), [])
            if p.startswith(prefix) or p == subtree
        ]


class FlakyStore:
    """Wraps a store and fails selected writes.

    ``fail_keys`` maps a key substring to how many times writes to matching
    keys should fail before succeeding (a large number means always). With
    ``land_before_failing`` a failing write still reaches the inner store,
    like an upload whose response was lost.
    """

    def __init__(
        self,
        inner: LocalContentStore,
        fail_keys: dict[str, int] | None = None,
        *,
        land_before_failing: bool = False,
    ) -> None:
        self.inner = inner
        self.fail_keys = dict(fail_keys or {})
        self.land_before_failing = land_before_failing
        self.put_calls: list[tuple[str, bool]] = []

    def put(self, key: str, data: bytes, metadata: dict[str, str], *, overwrite: bool = True) -> str | None:
        self.put_calls.append((key, overwrite))
        for fragment, remaining in self.fail_keys.items():
            if fragment in key and remaining > 0:
                self.fail_keys[fragment] = remaining - 1
                if self.land_before_failing:
                    self.inner.put(key, data, metadata, overwrite=overwrite)
                raise UploadFailed(f"simulated failure writing {key}", step="publish")
        return self.inner.put(key, data, metadata, overwrite=overwrite)

    def head(self, key: str) -> ObjectHead | None:
        return self.inner.head(key)

    def get(self, key: str) -> bytes:
        return self.inner.get(key)


class SelectiveFailBuilder:
    """Copies sources, but fails for source paths listed in ``failing``."""

    def __init__(self, failing: set[str]) -> None:
        self.failing = set(failing)
        self.inner = SourceCopyBuilder()

    def build(self, source_path: Path, runtime: str, output_dir: Path, *, timeout_seconds: float | None = None) -> Path:
        if source_path.name in self.failing:
            raise BuildFailed(
                f"Build of {source_path} exited with status 1",
                step="build",
                diagnostic="error CS1002: ; expected",
            )
        return self.inner.build(source_path, runtime, output_dir, timeout_seconds=timeout_seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


MANIFEST_YAML = """\
Foo:
  Type: Lambda
  Path: src/Foo
  Tests:
    Unit: tests/Foo.Tests
Bar:
  Type: Lambda
  Path: src/Bar
  Runtime: python3.12
Queue:
  Type: SQS
  Path: infra/queue
"""


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """A source tree with two Lambda units and a manifest."""
    root = tmp_path / "repo"
    for name in ("Foo", "Bar"):
        src = root / "src" / name
        src.mkdir(parents=True)
        (src / "handler.py").write_text(f"def handler(event, context):\n    return {name!r}\n")
        (src / "lib").mkdir()
        (src / "lib" / "util.py").write_text("VALUE = 1\n")
    (root / "lambdas.yaml").write_text(MANIFEST_YAML)
    return root


@pytest.fixture
def local_store(tmp_path: Path) -> LocalContentStore:
    """Provide a revisioning LocalContentStore in a temp directory."""
    return LocalContentStore(tmp_path / "store")


@pytest.fixture
def metadata_writer(tmp_path: Path) -> MetadataWriter:
    return MetadataWriter(tmp_path / "metadata")


@pytest.fixture
def unit_foo() -> UnitDescriptor:
    return UnitDescriptor(name="Foo", source_path="src/Foo")


@pytest.fixture
def unit_bar() -> UnitDescriptor:
    return UnitDescriptor(name="Bar", source_path="src/Bar")


@pytest.fixture
def make_publisher(
    repo_dir: Path, metadata_writer: MetadataWriter, tmp_path: Path
) -> Callable[..., ArtifactPublisher]:
    """Factory fixture: an ArtifactPublisher over the test repo."""

    def _factory(store=None, builder=None, clock=None, **overrides) -> ArtifactPublisher:
        kwargs = {
            "key_prefix": "lambdas",
            "source_root": repo_dir,
            "build_root": tmp_path / "build",
        }
        kwargs.update(overrides)
        return ArtifactPublisher(
            store if store is not None else LocalContentStore(tmp_path / "store"),
            builder or SourceCopyBuilder(),
            metadata_writer,
            clock or LogicalClock(),
            **kwargs,
        )

    return _factory


@pytest.fixture
def make_config(repo_dir: Path, tmp_path: Path) -> Callable[..., PromoteConfig]:
    """Factory fixture: a local-store PromoteConfig rooted at the test repo."""

    def _factory(**overrides) -> PromoteConfig:
        values = {
            "manifest_path": repo_dir / "lambdas.yaml",
            "repo_path": repo_dir,
            "store_backend": "local",
            "local_store_path": tmp_path / "store",
            "metadata_dir": tmp_path / "metadata",
            "build_root": tmp_path / "build",
        }
        values.update(overrides)
        return PromoteConfig(**values)

    return _factory


@pytest.fixture
def fake_history() -> type[FakeHistory]:
    return FakeHistory


@pytest.fixture
def flaky_store() -> type[FlakyStore]:
    return FlakyStore


@pytest.fixture
def selective_fail_builder() -> type[SelectiveFailBuilder]:
    return SelectiveFailBuilder
