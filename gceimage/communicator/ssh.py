"""基于本地 ssh 客户端的通信器

私钥写入仅本用户可读的临时文件，会话关闭时删除。
每条命令通过一次独立的 ssh 调用执行（BatchMode，不做主机指纹校验）。
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from typing import Any

from gceimage.core.exceptions import CommunicatorError, ExecutionError
from gceimage.utils.shell import CommandResult, get_executor

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10


class SSHCommunicator:
    """通过 ssh 子进程执行远程命令"""

    def __init__(
        self, host: str, username: str, *,
        port: int = 22, private_key: str = "",
    ) -> None:
        self.host = host
        self.username = username
        self.port = port
        self._key_file = ""
        if private_key:
            fd, self._key_file = tempfile.mkstemp(prefix="gceimage-key-")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(private_key)
            os.chmod(self._key_file, 0o600)

    def _base_args(self) -> list[str]:
        args = [
            "ssh", "-p", str(self.port),
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", f"ConnectTimeout={CONNECT_TIMEOUT}",
        ]
        if self._key_file:
            args += ["-i", self._key_file]
        return [*args, f"{self.username}@{self.host}"]

    def start(self, cmd: str) -> CommandResult:
        logger.debug("ssh %s@%s: %s", self.username, self.host, cmd)
        try:
            r = get_executor().execute([*self._base_args(), cmd])
        except ExecutionError as e:
            raise CommunicatorError(str(e)) from e
        if r.returncode == 255:
            # ssh 自身的连接错误
            raise CommunicatorError(f"ssh 连接 {self.host} 失败: {r.stderr.strip()}")
        return r

    def upload(self, dest: str, data: str) -> None:
        cmd = f"cat > {shlex.quote(dest)}"
        try:
            r = get_executor().execute([*self._base_args(), cmd], stdin=data)
        except ExecutionError as e:
            raise CommunicatorError(str(e)) from e
        if not r.success:
            raise CommunicatorError(f"上传到 {dest} 失败: {r.stderr.strip()}")

    def close(self) -> None:
        if self._key_file:
            try:
                os.unlink(self._key_file)
            except OSError as e:
                logger.warning("删除临时私钥失败: %s", e)
            self._key_file = ""


def connect_ssh(host: str, auth: dict[str, Any]) -> SSHCommunicator:
    """建立会话并以一条空命令探测连通性，失败抛 CommunicatorError"""
    if not host:
        raise CommunicatorError("没有可连接的主机地址")
    comm = SSHCommunicator(
        host, auth.get("username", "root"),
        port=int(auth.get("port", 22)),
        private_key=auth.get("private_key") or "",
    )
    try:
        comm.start("true")
    except CommunicatorError:
        comm.close()
        raise
    return comm
