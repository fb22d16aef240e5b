"""共享测试夹具"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from gceimage.core.config import Config
from gceimage.core.exceptions import GceImageError
from gceimage.core.state import StateBag
from gceimage.core.step import Step, StepAction
from gceimage.drivers import register_driver, unregister_driver
from gceimage.drivers.memory import MemoryDriver

SOURCE_IMAGE = "debian-8-jessie-v20160803"


@pytest.fixture
def raw_config() -> dict[str, Any]:
    return {
        "project_id": "demo-project",
        "zone": "us-central1-a",
        "source_image": SOURCE_IMAGE,
        "image_name": "test-image",
        "instance_name": "test-instance",
        "communicator": "none",
        "driver": "test",
    }


@pytest.fixture
def config(raw_config: dict[str, Any]) -> Config:
    cfg = Config.from_dict(raw_config)
    cfg.validate()
    return cfg


@pytest.fixture
def ui() -> MagicMock:
    return MagicMock()


@pytest.fixture
def driver() -> MemoryDriver:
    return MemoryDriver(project_id="demo-project")


@pytest.fixture
def registered_driver(driver: MemoryDriver):
    """以 "test" 名注册共享的内存驱动，便于断言构建后的云上状态"""
    register_driver("test", lambda config, ui: driver)
    yield driver
    unregister_driver("test")


@pytest.fixture
def state(config: Config, driver: MemoryDriver, ui: MagicMock) -> StateBag:
    s = StateBag()
    s.config = config
    s.driver = driver
    s.ui = ui
    return s


class RecordingStep(Step):
    """记录 run/cleanup 调用顺序的测试步骤"""

    def __init__(
        self, label: str, log: list[tuple[str, str]], *,
        action: StepAction = StepAction.CONTINUE,
        on_run: Any = None,
        cleanup_error: Exception | None = None,
    ) -> None:
        self.label = label
        self.log = log
        self.action = action
        self.on_run = on_run
        self.cleanup_error = cleanup_error

    @property
    def name(self) -> str:
        return self.label

    def run(self, state: StateBag) -> StepAction:
        self.log.append(("run", self.label))
        if self.on_run is not None:
            self.on_run(state)
        if self.action is StepAction.HALT:
            state.error = GceImageError(f"{self.label} 失败")
        return self.action

    def cleanup(self, state: StateBag) -> None:
        self.log.append(("cleanup", self.label))
        if self.cleanup_error is not None:
            raise self.cleanup_error


@pytest.fixture
def step_log() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def make_step(step_log: list[tuple[str, str]]):
    """构造共享同一调用日志的 RecordingStep"""

    def factory(label: str, **kwargs: Any) -> RecordingStep:
        return RecordingStep(label, step_log, **kwargs)

    return factory
