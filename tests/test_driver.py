"""Tests for the reconciliation driver: pipeline scenarios and retry policy."""

import tempfile
from pathlib import Path

import pytest

from bundle_builder.bundle import packager, publisher
from bundle_builder.bundle.reader import read_bundle
from bundle_builder.config import BuilderConfig
from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.models.resource import PolicyResource
from bundle_builder.reconcile import driver as driver_module
from bundle_builder.reconcile.actions import Action, ReconcileState
from bundle_builder.reconcile.driver import ReconcileDriver, error_policy, update_bundle


def _make_config(tmpdir: str, **overrides) -> BuilderConfig:
    config = BuilderConfig.under(tmpdir, **overrides)
    config.ensure_dirs()
    return config


def _served(config: BuilderConfig) -> dict:
    return read_bundle(config.serving_archive)


def _snapshot(root: Path) -> dict:
    return {
        p.relative_to(root).as_posix(): p.read_bytes() if p.is_file() else None
        for p in sorted(root.rglob("*"))
    }


# --- Scenarios ---


def test_scenario_a_first_publish():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        result = ReconcileDriver(config).reconcile(
            PolicyResource(name="team-a", entries={"rules.rego": "allow true"})
        )

        assert result.state == ReconcileState.DONE
        assert result.published
        assert result.action == Action.await_change()
        assert _served(config) == {"bundles/team-a/rules.rego": b"allow true"}


def test_scenario_b_update_keeps_other_resources():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="team-a", entries={"rules.rego": "allow true"}))
        driver.reconcile(PolicyResource(name="team-b", entries={"b.rego": "b"}))

        driver.reconcile(PolicyResource(name="team-a", entries={"rules.rego": "deny true"}))

        assert _served(config) == {
            "bundles/team-a/rules.rego": b"deny true",
            "bundles/team-b/b.rego": b"b",
        }


def test_scenario_c_two_resources_side_by_side():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="team-a", entries={"a.rego": "a"}))
        driver.reconcile(PolicyResource(name="team-b", entries={"b.rego": "b"}))

        names = set(_served(config))
        assert "bundles/team-a/a.rego" in names
        assert "bundles/team-b/b.rego" in names


def test_scenario_d_package_failure_keeps_served_archive(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="team-a", entries={"a.rego": "a"}))
        before = config.serving_archive.read_bytes()

        def _disk_full(*args, **kwargs):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(packager.tarfile, "open", _disk_full)
        result = driver.process(PolicyResource(name="team-c", entries={"c.rego": "c"}))

        assert result.failed
        assert result.error.kind == ErrorKind.PACKAGE
        assert result.action == Action.requeue(config.retry_delay)
        assert config.serving_archive.read_bytes() == before
        assert len(driver.queue) == 1
        assert not config.staging_archive.exists()


# --- Properties ---


def test_publish_failure_keeps_served_archive(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="team-a", entries={"a.rego": "a"}))
        before = config.serving_archive.read_bytes()

        def _refuse(src, dst):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(publisher.os, "replace", _refuse)
        result = driver.reconcile(PolicyResource(name="team-b", entries={"b.rego": "b"}))

        assert result.error.kind == ErrorKind.PUBLISH
        assert config.serving_archive.read_bytes() == before


def test_change_during_failed_build_is_not_lost(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        newer = PolicyResource(name="team-a", entries={"r.rego": "v2"})

        def _fail_after_change(*args, **kwargs):
            driver.queue.add(newer)
            raise BuilderError(ErrorKind.PACKAGE, "disk full")

        monkeypatch.setattr(driver_module, "package", _fail_after_change)
        result = driver.process(PolicyResource(name="team-a", entries={"r.rego": "v1"}))

        assert result.failed
        assert len(driver.queue) == 1
        assert driver.queue.get(timeout=0).entries == {"r.rego": "v2"}


def test_empty_payload_is_a_no_op():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="team-a", entries={"a.rego": "a"}))
        before = _snapshot(Path(tmpdir))

        for entries in (None, {}):
            result = driver.reconcile(PolicyResource(name="team-b", entries=entries))
            assert result.state == ReconcileState.DONE
            assert not result.published
            assert result.action == Action.await_change()

        assert _snapshot(Path(tmpdir)) == before


def test_missing_name_never_reaches_materializer(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        calls = []
        monkeypatch.setattr(driver_module, "materialize", lambda *a: calls.append(a))

        result = ReconcileDriver(config).reconcile(
            PolicyResource(name=None, entries={"a.rego": "a"})
        )

        assert result.error.kind == ErrorKind.NO_NAME
        assert result.action.is_requeue
        assert calls == []
        assert list(config.incoming_dir.iterdir()) == []
        assert not config.serving_archive.exists()


def test_republishing_same_content_is_stable():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        resource = PolicyResource(name="team-a", entries={"a.rego": "a", "b.rego": "b"})

        driver.reconcile(resource)
        first = _served(config)
        driver.reconcile(resource)

        assert _served(config) == first


def test_deleted_resource_stays_bundled():
    # Deletions are not modelled: a resource that is never seen again keeps
    # its files in the staging tree and therefore in every later bundle.
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        driver.reconcile(PolicyResource(name="gone", entries={"old.rego": "old"}))
        driver.reconcile(PolicyResource(name="team-a", entries={"a.rego": "a"}))

        assert _served(config)["bundles/gone/old.rego"] == b"old"


def test_failure_before_first_publish_leaves_nothing_served(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        def _fail(*args, **kwargs):
            raise BuilderError(ErrorKind.PACKAGE, "boom")

        monkeypatch.setattr(driver_module, "package", _fail)

        result = ReconcileDriver(config).reconcile(
            PolicyResource(name="team-a", entries={"a.rego": "a"})
        )

        assert result.failed
        assert not config.serving_archive.exists()


# --- Retry policy ---


@pytest.mark.parametrize("kind", [ErrorKind.NO_NAME, ErrorKind.DIRECTORY, ErrorKind.PACKAGE, ErrorKind.PUBLISH])
def test_error_policy_is_fixed_delay(kind):
    config = BuilderConfig(retry_delay=5.0)
    action = error_policy(PolicyResource(name="x"), BuilderError(kind, "x"), config)
    assert action == Action.requeue(5.0)


def test_update_bundle_raises_builder_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        with pytest.raises(BuilderError) as excinfo:
            update_bundle(PolicyResource(name=""), config)
        assert excinfo.value.kind == ErrorKind.NO_NAME


def test_run_processes_feed_in_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir)
        driver = ReconcileDriver(config)
        feed = [
            PolicyResource(name="team-a", entries={"rules.rego": "allow true"}),
            PolicyResource(name="team-b", entries={"b.rego": "b"}),
        ]

        driver.run(feed)

        assert _served(config) == {
            "bundles/team-a/rules.rego": b"allow true",
            "bundles/team-b/b.rego": b"b",
        }


def test_run_retries_until_success(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _make_config(tmpdir, retry_delay=0.01)
        driver = ReconcileDriver(config)
        real_package = driver_module.package
        attempts = []

        def _flaky(*args, **kwargs):
            attempts.append(1)
            if len(attempts) < 3:
                raise BuilderError(ErrorKind.PACKAGE, "transient")
            return real_package(*args, **kwargs)

        monkeypatch.setattr(driver_module, "package", _flaky)
        driver.run([PolicyResource(name="team-a", entries={"a.rego": "a"})])

        assert len(attempts) == 3
        assert _served(config) == {"bundles/team-a/a.rego": b"a"}


def test_run_reraises_feed_failure():
    def _broken_feed():
        yield PolicyResource(name="team-a", entries={"a.rego": "a"})
        raise RuntimeError("watch exploded")

    with tempfile.TemporaryDirectory() as tmpdir:
        driver = ReconcileDriver(_make_config(tmpdir))
        with pytest.raises(RuntimeError, match="watch exploded"):
            driver.run(_broken_feed())
