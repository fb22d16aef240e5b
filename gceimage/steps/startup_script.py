"""等待启动脚本完成

启动脚本在实例内运行结束后把结果写入实例元数据 startup-script-status，
此步骤轮询该键直到 done / error 或超时。
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from gceimage.core.exceptions import BuildCancelledError, DriverError, GceImageError
from gceimage.core.models import (
    STARTUP_SCRIPT_STATUS_DONE,
    STARTUP_SCRIPT_STATUS_ERROR,
    STARTUP_SCRIPT_STATUS_KEY,
)
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)

SERIAL_TAIL_LINES = 20


class StepWaitStartupScript(Step):
    """轮询实例元数据，确认启动脚本已成功结束"""

    def __init__(self, *, poll_interval: float = 5.0) -> None:
        self.poll_interval = poll_interval

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        driver = state.driver
        name = config.instance_name

        state.ui.say("等待启动脚本完成...")
        deadline = time.monotonic() + config.state_timeout_seconds
        while True:
            try:
                status = driver.get_instance_metadata(
                    config.zone, name, STARTUP_SCRIPT_STATUS_KEY,
                )
            except DriverError as e:
                return self.halt(state, e)

            if status == STARTUP_SCRIPT_STATUS_DONE:
                state.ui.message("启动脚本已完成")
                return StepAction.CONTINUE
            if status == STARTUP_SCRIPT_STATUS_ERROR:
                self._report_serial_output(state)
                return self.halt(state, GceImageError("启动脚本执行失败"))

            logger.debug("启动脚本状态: %r", status)
            if state.cancelled:
                return self.halt(state, BuildCancelledError("等待启动脚本时构建被取消"))
            if time.monotonic() + self.poll_interval > deadline:
                return self.halt(state, GceImageError("等待启动脚本完成超时"))
            time.sleep(self.poll_interval)

    @staticmethod
    def _report_serial_output(state: StateBag) -> None:
        """把串口输出末尾几行交给 UI，便于定位启动脚本失败原因"""
        config = state.config
        try:
            output = state.driver.get_serial_port_output(config.zone, config.instance_name)
        except DriverError as e:
            logger.warning("读取串口输出失败: %s", e)
            return
        for line in output.splitlines()[-SERIAL_TAIL_LINES:]:
            state.ui.message(line)
