"""Shell 配置器钩子

按顺序在实例上执行模板中 provisioners 列出的命令，任一命令非零退出即失败。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gceimage.core.exceptions import ProvisionError

if TYPE_CHECKING:
    from gceimage.core.protocols import Communicator, Ui

logger = logging.getLogger(__name__)


class ShellProvisionHook:
    """执行 shell 命令列表的配置器"""

    def __init__(self, commands: list[str]) -> None:
        self.commands = list(commands)

    def run(
        self, name: str, ui: Ui, communicator: Communicator | None,
        data: Any = None,
    ) -> None:
        if not self.commands:
            return
        if communicator is None:
            raise ProvisionError("没有可用的远程会话，无法执行配置器")

        for i, cmd in enumerate(self.commands, 1):
            ui.say(f"[{name} {i}/{len(self.commands)}] {cmd}")
            r = communicator.start(cmd)
            for line in r.stdout.splitlines():
                ui.message(line)
            if not r.success:
                raise ProvisionError(
                    f"命令失败 (rc={r.returncode}): {cmd}\n{r.stderr[:500]}",
                )
        logger.info("配置器完成: %d 条命令", len(self.commands))
