"""远程通信器注册表

按 communicator 类型名选择连接工厂 (host, auth) -> Communicator。
内置 ssh（基于本地 ssh 客户端）；winrm 等需通过 register_connector() 接入。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gceimage.core.exceptions import ConfigError

if TYPE_CHECKING:
    from gceimage.core.protocols import Communicator, Connector

logger = logging.getLogger(__name__)

_connectors: dict[str, Connector] = {}


def register_connector(kind: str, connector: Connector) -> None:
    _connectors[kind] = connector


def unregister_connector(kind: str) -> None:
    _connectors.pop(kind, None)


def get_connector(kind: str) -> Connector:
    connector = _connectors.get(kind)
    if connector is None:
        raise ConfigError(f"通信器 {kind} 未注册可用的连接实现")
    return connector


def _ssh_connector(host: str, auth: dict[str, Any]) -> Communicator:
    from gceimage.communicator.ssh import connect_ssh
    return connect_ssh(host, auth)


register_connector("ssh", _ssh_connector)
