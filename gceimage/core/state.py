"""步骤间共享状态容器

StateBag 是一次构建内所有步骤唯一的通信通道：
  - 通用 put/get/get_ok，键名开放，供步骤私有数据使用
  - 已知的跨步骤数据（驱动、实例名、镜像、错误等）以类型化属性暴露，
    与通用接口共用同一张表，避免散落的字符串键拼写错误
  - 内部以可重入锁保护，运行线程与取消线程并发访问时不会破坏状态

用法:
    state = StateBag()
    state.config = cfg
    state.put("debug_key_path", "gce_default.pem")
    value, ok = state.get_ok("debug_key_path")
"""

from __future__ import annotations

import threading
from typing import Any

# 已知键名
KEY_CONFIG = "config"
KEY_DRIVER = "driver"
KEY_HOOK = "hook"
KEY_UI = "ui"
KEY_ERROR = "error"
KEY_IMAGE = "image"
KEY_FAILED_STEP = "failed_step"
KEY_INSTANCE_NAME = "instance_name"
KEY_INSTANCE_IP = "instance_ip"
KEY_DISK_NAME = "disk_name"
KEY_SSH_PRIVATE_KEY = "ssh_private_key"
KEY_SSH_PUBLIC_KEY = "ssh_public_key"
KEY_WINDOWS_PASSWORD = "windows_password"
KEY_COMMUNICATOR = "communicator"
KEY_CANCELLED = "cancelled"
KEY_HALTED = "halted"


class StateKeyError(KeyError):
    """读取了不存在的状态键"""


def _typed(key: str, doc: str) -> property:
    def fget(self: StateBag) -> Any:
        value, _ = self.get_ok(key)
        return value

    def fset(self: StateBag, value: Any) -> None:
        self.put(key, value)

    return property(fget, fset, doc=doc)


class StateBag:
    """线程安全的键值状态容器"""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, Any] = dict(initial or {})

    # ---- 通用接口 ----

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> Any:
        """读取键值，不存在时抛 StateKeyError"""
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                raise StateKeyError(key) from None

    def get_ok(self, key: str) -> tuple[Any, bool]:
        """读取键值，返回 (value, 是否存在)"""
        with self._lock:
            if key in self._data:
                return self._data[key], True
            return None, False

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def snapshot(self) -> dict[str, Any]:
        """返回当前内容的浅拷贝（用于调试输出）"""
        with self._lock:
            return dict(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    # ---- 类型化属性 ----

    config = _typed(KEY_CONFIG, "构建配置")
    driver = _typed(KEY_DRIVER, "云驱动")
    hook = _typed(KEY_HOOK, "配置器钩子")
    ui = _typed(KEY_UI, "进度输出")
    error = _typed(KEY_ERROR, "终止运行的错误")
    image = _typed(KEY_IMAGE, "已创建的镜像")
    failed_step = _typed(KEY_FAILED_STEP, "中止运行的步骤名")
    instance_name = _typed(KEY_INSTANCE_NAME, "已创建的实例名")
    instance_ip = _typed(KEY_INSTANCE_IP, "实例连接地址")
    disk_name = _typed(KEY_DISK_NAME, "实例启动盘名")
    ssh_private_key = _typed(KEY_SSH_PRIVATE_KEY, "SSH 私钥 PEM")
    ssh_public_key = _typed(KEY_SSH_PUBLIC_KEY, "SSH 公钥")
    windows_password = _typed(KEY_WINDOWS_PASSWORD, "Windows 密码")
    communicator = _typed(KEY_COMMUNICATOR, "远程会话")

    @property
    def cancelled(self) -> bool:
        value, _ = self.get_ok(KEY_CANCELLED)
        return bool(value)

    @property
    def halted(self) -> bool:
        value, _ = self.get_ok(KEY_HALTED)
        return bool(value)
