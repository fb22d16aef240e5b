"""SSH 密钥准备

使用用户提供的私钥，或调用 ssh-keygen 生成一次性 RSA 密钥对。
临时密钥文件放在私有临时目录中，cleanup 时删除。
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from gceimage.core.exceptions import ConfigError, ExecutionError
from gceimage.core.step import Step, StepAction
from gceimage.utils.shell import run_cmd

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)

KEY_BITS = 2048


class StepCreateSSHKey(Step):
    """准备 SSH 密钥对，写入 state.ssh_private_key / state.ssh_public_key"""

    def __init__(
        self, *, debug: bool = False, debug_key_path: str = "",
        private_key_file: str = "",
    ) -> None:
        self.debug = debug
        self.debug_key_path = debug_key_path
        self.private_key_file = private_key_file
        self._tmp_dir = ""

    @property
    def name(self) -> str:
        return "create_ssh_key"

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        if config.communicator != "ssh":
            return StepAction.CONTINUE

        ui = state.ui
        if self.private_key_file:
            ui.say("使用已有 SSH 私钥...")
            try:
                state.ssh_private_key = Path(self.private_key_file).read_text(
                    encoding="utf-8",
                )
            except OSError as e:
                return self.halt(
                    state, ConfigError(f"读取 SSH 私钥失败 {self.private_key_file}: {e}"),
                )
            return StepAction.CONTINUE

        ui.say("生成临时 SSH 密钥...")
        self._tmp_dir = tempfile.mkdtemp(prefix="gceimage-ssh-")
        key_path = Path(self._tmp_dir) / "id_rsa"
        try:
            run_cmd(
                ["ssh-keygen", "-t", "rsa", "-b", str(KEY_BITS), "-m", "PEM",
                 "-N", "", "-C", config.ssh_username, "-q", "-f", str(key_path)],
                label="ssh-keygen",
            )
            private_key = key_path.read_text(encoding="utf-8")
            public_key = key_path.with_suffix(".pub").read_text(encoding="utf-8")
        except (ExecutionError, OSError) as e:
            return self.halt(state, ExecutionError(f"生成 SSH 密钥失败: {e}"))

        state.ssh_private_key = private_key
        state.ssh_public_key = public_key.strip()

        if self.debug:
            ui.message(f"保存调试用私钥: {self.debug_key_path}")
            try:
                Path(self.debug_key_path).write_text(private_key, encoding="utf-8")
                os.chmod(self.debug_key_path, 0o600)
            except OSError as e:
                return self.halt(state, ExecutionError(f"保存调试私钥失败: {e}"))
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        if self._tmp_dir:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            logger.debug("已删除临时密钥目录: %s", self._tmp_dir)
            self._tmp_dir = ""
