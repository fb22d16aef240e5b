"""Windows 密码获取"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from gceimage.core.exceptions import DriverError
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)


class StepCreateWindowsPassword(Step):
    """WinRM 通信且未配置密码时，为 winrm_username 重置密码并写入 state"""

    def __init__(self, *, debug: bool = False, debug_key_path: str = "") -> None:
        self.debug = debug
        self.debug_key_path = debug_key_path

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        if config.communicator != "winrm":
            return StepAction.CONTINUE
        if config.winrm_password:
            state.windows_password = config.winrm_password
            return StepAction.CONTINUE

        ui = state.ui
        ui.say(f"为用户 {config.winrm_username} 生成 Windows 密码...")
        try:
            password = state.driver.create_windows_password(
                config.zone, state.instance_name, config.winrm_username,
                timeout=config.state_timeout_seconds,
            )
        except DriverError as e:
            return self.halt(state, e)

        state.windows_password = password
        ui.message("已取得 Windows 密码")
        if self.debug:
            ui.message(f"密码: {password}")
            if self.debug_key_path:
                try:
                    Path(self.debug_key_path).write_text(password, encoding="utf-8")
                    os.chmod(self.debug_key_path, 0o600)
                except OSError as e:
                    logger.warning("保存调试密码失败: %s", e)
        return StepAction.CONTINUE
