"""Builder 单元测试"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

import gceimage.core.builder as buildermod
from gceimage.core.artifact import Artifact
from gceimage.core.exceptions import (
    BuildCancelledError,
    BuildError,
    ConfigError,
    DriverError,
    GceImageError,
    InternalError,
)
from gceimage.core.models import Image
from gceimage.core.runner import RunStatus
from gceimage.core.step import StepAction
from gceimage.drivers import register_driver, unregister_driver


@pytest.fixture
def builder(raw_config, registered_driver) -> buildermod.Builder:
    b = buildermod.Builder()
    b.prepare(raw_config)
    return b


def _patch_plan(monkeypatch: pytest.MonkeyPatch, steps: list) -> None:
    monkeypatch.setattr(buildermod, "plan_steps", lambda config, connector=None: steps)


class TestPrepare:
    def test_returns_warnings(self, raw_config) -> None:
        b = buildermod.Builder()
        assert b.prepare(raw_config, {"unknown_key": 1}) == ["未知配置项: unknown_key"]
        assert b.config is not None

    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigError) as exc:
            buildermod.Builder().prepare({"zone": "us-central1-a"})
        assert exc.value.details

    def test_run_requires_prepare(self, ui) -> None:
        with pytest.raises(InternalError):
            buildermod.Builder().run(ui)


class TestRunOutcome:
    def test_success_returns_artifact(self, builder, registered_driver, ui) -> None:
        artifact = builder.run(ui)

        assert isinstance(artifact, Artifact)
        assert artifact.id == "test-image"
        assert "test-image" in registered_driver.images
        # 实例与磁盘在清理阶段被回收
        assert registered_driver.instances == {}
        assert registered_driver.disks == {}
        assert builder.runner.status is RunStatus.COMPLETED
        assert builder.state.error is None

    def test_step_failure_reports_step_and_cause(
        self, builder, monkeypatch, make_step, step_log, ui,
    ) -> None:
        steps = [
            make_step(f"s{i}", action=StepAction.HALT if i == 3 else StepAction.CONTINUE)
            for i in range(6)
        ]
        _patch_plan(monkeypatch, steps)

        with pytest.raises(BuildError) as exc:
            builder.run(ui)

        assert exc.value.step == "s3"
        assert isinstance(exc.value.__cause__, GceImageError)
        assert "s3 失败" in str(exc.value)
        assert [label for kind, label in step_log if kind == "run"] == ["s0", "s1", "s2", "s3"]
        assert [label for kind, label in step_log if kind == "cleanup"] == ["s3", "s2", "s1", "s0"]

    def test_driver_failure_mid_run_cleans_up(self, builder, registered_driver, ui) -> None:
        registered_driver.fail_on.add("create_image")

        with pytest.raises(BuildError) as exc:
            builder.run(ui)

        assert exc.value.step == "create_image"
        assert isinstance(exc.value.__cause__, DriverError)
        assert registered_driver.instances == {}
        assert registered_driver.disks == {}
        assert registered_driver.images == {}

    def test_no_image_no_error_is_internal_error(
        self, builder, monkeypatch, make_step, ui,
    ) -> None:
        _patch_plan(monkeypatch, [make_step("a"), make_step("b")])
        with pytest.raises(InternalError):
            builder.run(ui)

    def test_image_written_by_last_step(self, builder, monkeypatch, make_step, ui) -> None:
        def write_image(state) -> None:
            state.image = Image(name="from-step")

        _patch_plan(monkeypatch, [make_step("a"), make_step("b", on_run=write_image)])
        artifact = builder.run(ui)
        assert artifact.id == "from-step"
        assert builder.state.error is None

    def test_dry_run_returns_none(self, raw_config, registered_driver, ui) -> None:
        b = buildermod.Builder()
        b.prepare(raw_config, {"dry_run": True})

        assert b.run(ui) is None
        assert registered_driver.images == {}
        assert "create_image" not in registered_driver.calls

    def test_hook_invoked_for_provision(self, builder, ui) -> None:
        hook = MagicMock()
        builder.run(ui, hook)
        hook.run.assert_called_once()
        assert hook.run.call_args.args[0] == "provision"


class TestDriverConstruction:
    def test_factory_failure_aborts_before_steps(self, raw_config, monkeypatch, ui) -> None:
        planned: list[object] = []
        monkeypatch.setattr(
            buildermod, "plan_steps",
            lambda config, connector=None: planned.append(config) or [],
        )

        def bad_factory(config, ui):
            raise ValueError("invalid credentials")

        register_driver("broken", bad_factory)
        try:
            b = buildermod.Builder()
            b.prepare(raw_config, {"driver": "broken"})
            with pytest.raises(DriverError, match="invalid credentials"):
                b.run(ui)
        finally:
            unregister_driver("broken")

        assert planned == []
        assert b.runner is None

    def test_unknown_driver(self, raw_config, ui) -> None:
        b = buildermod.Builder()
        b.prepare(raw_config, {"driver": "nonexistent"})
        with pytest.raises(ConfigError, match="未知驱动"):
            b.run(ui)


class TestCancel:
    def test_cancel_before_run_is_noop(self, builder, ui) -> None:
        builder.cancel()
        assert isinstance(builder.run(ui), Artifact)

    def test_cancel_mid_run(self, builder, monkeypatch, make_step, step_log, ui) -> None:
        steps = [
            make_step("a"),
            make_step("b", on_run=lambda state: builder.cancel()),
            make_step("c"),
        ]
        _patch_plan(monkeypatch, steps)

        with pytest.raises(BuildCancelledError):
            builder.run(ui)

        assert ("run", "c") not in step_log
        assert [label for kind, label in step_log if kind == "cleanup"] == ["b", "a"]
        assert builder.runner.status is RunStatus.CANCELLED

    def test_cancel_during_driver_construction(self, raw_config, driver, ui) -> None:
        entered = threading.Event()
        release = threading.Event()

        def slow_factory(config, ui):
            entered.set()
            assert release.wait(5)
            return driver

        register_driver("slow", slow_factory)
        try:
            b = buildermod.Builder()
            b.prepare(raw_config, {"driver": "slow"})
            outcome: dict[str, BaseException] = {}

            def worker() -> None:
                try:
                    b.run(ui)
                except BaseException as e:  # noqa: BLE001
                    outcome["error"] = e

            t = threading.Thread(target=worker)
            t.start()
            assert entered.wait(5)
            b.cancel()
            release.set()
            t.join(5)
        finally:
            unregister_driver("slow")

        assert isinstance(outcome.get("error"), BuildCancelledError)
        assert driver.calls == []
        assert b.runner is None

    def test_second_run_gets_fresh_cancel_state(
        self, builder, monkeypatch, make_step, ui,
    ) -> None:
        _patch_plan(monkeypatch, [
            make_step("a", on_run=lambda state: builder.cancel()), make_step("b"),
        ])
        with pytest.raises(BuildCancelledError):
            builder.run(ui)

        monkeypatch.undo()
        assert isinstance(builder.run(ui), Artifact)

    def test_cancel_after_run_is_noop(self, builder, ui) -> None:
        builder.run(ui)
        builder.cancel()
        assert builder.runner.status is RunStatus.COMPLETED
