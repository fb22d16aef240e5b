"""建立远程会话

连接参数由回调从状态中解析（主机地址、SSH / WinRM 认证信息），
在 ssh_timeout 内按固定间隔重试，期间可被取消。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from gceimage.core.exceptions import BuildCancelledError, CommunicatorError, ConfigError
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.protocols import Connector
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)

AuthFn = Callable[["StateBag"], dict[str, Any]]


def comm_host(state: StateBag) -> str:
    return state.instance_ip or ""


def ssh_config(state: StateBag) -> dict[str, Any]:
    config = state.config
    return {
        "username": config.ssh_username,
        "port": config.ssh_port,
        "private_key": state.ssh_private_key,
    }


def winrm_config(state: StateBag) -> dict[str, Any]:
    config = state.config
    return {
        "username": config.winrm_username,
        "port": config.winrm_port,
        "password": state.windows_password or config.winrm_password,
    }


class StepConnect(Step):
    """按配置的通信器类型连接实例，写入 state.communicator"""

    def __init__(
        self, *,
        connector: Connector | None = None,
        host: Callable[[StateBag], str] = comm_host,
        ssh_auth: AuthFn = ssh_config,
        winrm_auth: AuthFn = winrm_config,
        retry_interval: float = 5.0,
    ) -> None:
        self.connector = connector
        self.host = host
        self.ssh_auth = ssh_auth
        self.winrm_auth = winrm_auth
        self.retry_interval = retry_interval

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        kind = config.communicator
        if kind == "none":
            state.ui.say("通信器为 none，跳过连接")
            return StepAction.CONTINUE

        connector = self.connector
        if connector is None:
            from gceimage.communicator import get_connector
            try:
                connector = get_connector(kind)
            except ConfigError as e:
                return self.halt(state, e)

        host = self.host(state)
        auth = self.ssh_auth(state) if kind == "ssh" else self.winrm_auth(state)
        state.ui.say(f"等待 {kind} 连接 {host}...")

        deadline = time.monotonic() + config.ssh_timeout_seconds
        attempt = 0
        while True:
            attempt += 1
            try:
                state.communicator = connector(host, auth)
                break
            except CommunicatorError as e:
                logger.debug("第 %d 次连接失败: %s", attempt, e)
                if time.monotonic() + self.retry_interval > deadline:
                    return self.halt(
                        state, CommunicatorError(f"连接 {host} 超时: {e}"),
                    )
            if state.cancelled:
                return self.halt(state, BuildCancelledError("等待连接时构建被取消"))
            time.sleep(self.retry_interval)

        state.ui.message(f"已连接 ({attempt} 次尝试)")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        comm = state.communicator
        if comm is not None:
            try:
                comm.close()
            except CommunicatorError as e:
                logger.warning("关闭远程会话失败: %s", e)
            state.communicator = None
