"""End-to-end integration tests — manifest to deployment parameters.

These tests exercise the manifest reader, ChangeDetector, ArtifactPublisher,
content store, metadata files and aggregation working together through the
PromotionOrchestrator.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from lambdapromote.core.content_store import LocalContentStore
from lambdapromote.core.errors import IncompleteArtifactSet
from lambdapromote.core.history import GitHistory
from lambdapromote.core.metadata import record_path
from lambdapromote.core.orchestrator import PromotionOrchestrator
from lambdapromote.core.versioning import LogicalClock
from lambdapromote.models.publish import PublishStep


class TestFullPipeline:
    """Detect -> publish -> aggregate with in-memory history."""

    def test_single_changed_unit(self, make_config, fake_history, tmp_path: Path):
        """Only Foo changed: Foo alone is published and parameterised."""
        history = fake_history({"c1"}, {("c1", "c2"): ["src/Foo/handler.py", "docs/x.md"]})
        store = LocalContentStore(tmp_path / "store")
        orch = PromotionOrchestrator(
            make_config(), history=history, store=store, clock=LogicalClock()
        )

        result = orch.run("c1", "c2")

        assert result.succeeded
        assert result.change_set.unit_names == ["Foo"]
        record = result.records[0]
        assert record.storage_key_versioned.startswith("lambdas/Foo/00000001-")
        assert store.head("lambdas/Bar/latest") is None

        params = {p.name: p.value for p in orch.parameters(result)}
        assert params == {
            "FooS3Key": "lambdas/Foo/latest",
            "FooS3Version": store.head("lambdas/Foo/latest").revision_id,
        }

    def test_bootstrap_publishes_every_unit(self, make_config, fake_history):
        orch = PromotionOrchestrator(make_config(), history=fake_history(), clock=LogicalClock())
        result = orch.run("0" * 40, "c2")

        assert result.change_set.bootstrap
        assert result.change_set.unit_names == ["Foo", "Bar"]
        assert [r.unit_name for r in result.records] == ["Foo", "Bar"]

    def test_no_changes_no_store_activity(self, make_config, fake_history, flaky_store, tmp_path: Path):
        store = flaky_store(LocalContentStore(tmp_path / "store"))
        history = fake_history({"c1"}, {("c1", "c2"): ["README.md"]})
        orch = PromotionOrchestrator(make_config(), history=history, store=store)

        result = orch.run("c1", "c2")

        assert not result.changed
        assert result.succeeded
        assert store.put_calls == []

    def test_versioned_upload_failure_isolated(
        self, make_config, fake_history, flaky_store, tmp_path: Path
    ):
        """Foo's versioned write fails twice; Bar still publishes, run fails."""
        store = flaky_store(LocalContentStore(tmp_path / "store"), {"lambdas/Foo/0": 2})
        orch = PromotionOrchestrator(
            make_config(), history=fake_history(), store=store, clock=LogicalClock()
        )

        result = orch.run("", "c2")

        assert not result.succeeded
        assert [f.unit_name for f in result.failures] == ["Foo"]
        assert result.failures[0].kind == "UploadFailed"
        assert result.failures[0].step == PublishStep.PUBLISH
        assert [r.unit_name for r in result.records] == ["Bar"]
        assert record_path(tmp_path / "metadata", "Bar").exists()
        assert not record_path(tmp_path / "metadata", "Foo").exists()

        with pytest.raises(IncompleteArtifactSet) as exc_info:
            orch.parameters(result)
        assert exc_info.value.missing == ["Foo"]

    def test_second_run_moves_latest(self, make_config, fake_history, tmp_path: Path):
        store = LocalContentStore(tmp_path / "store")
        config = make_config()
        clock = LogicalClock()

        first = PromotionOrchestrator(config, history=fake_history(), store=store, clock=clock).run("", "c1")
        second = PromotionOrchestrator(config, history=fake_history(), store=store, clock=clock).run("", "c2")

        foo_first, foo_second = first.records[0], second.records[0]
        assert foo_first.fingerprint == foo_second.fingerprint
        assert foo_first.storage_key_versioned != foo_second.storage_key_versioned
        assert store.head(foo_first.storage_key_versioned) is not None
        assert store.head("lambdas/Foo/latest").revision_id == foo_second.store_revision_id


def _git(repo: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    ).stdout.strip()


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestPipelineWithGit:
    """The same pipeline driven by real git history."""

    def test_commit_to_one_unit(self, make_config, repo_dir: Path):
        _git(repo_dir, "init", "-q")
        _git(repo_dir, "config", "user.email", "ci@example.com")
        _git(repo_dir, "config", "user.name", "CI")
        _git(repo_dir, "config", "commit.gpgsign", "false")
        _git(repo_dir, "add", ".")
        _git(repo_dir, "commit", "-q", "-m", "initial")
        base = _git(repo_dir, "rev-parse", "HEAD")

        (repo_dir / "src" / "Bar" / "handler.py").write_text("def handler(e, c):\n    return 2\n")
        _git(repo_dir, "commit", "-q", "-am", "change bar")
        head = _git(repo_dir, "rev-parse", "HEAD")

        orch = PromotionOrchestrator(
            make_config(), history=GitHistory(repo_dir), clock=LogicalClock()
        )
        result = orch.run(base, head)

        assert result.succeeded
        assert result.change_set.unit_names == ["Bar"]
        assert [p.name for p in orch.parameters(result)] == ["BarS3Key", "BarS3Version"]
