"""云驱动注册表

驱动以名称注册工厂函数 (config, ui) -> Driver，构建时按 config.driver 选择。
内置 memory 驱动在进程内模拟实例与镜像生命周期，用于本地演练和测试；
真实云驱动通过 register_driver() 以插件方式接入。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from gceimage.core.exceptions import ConfigError, DriverError, GceImageError

if TYPE_CHECKING:
    from gceimage.core.config import Config
    from gceimage.core.protocols import Driver, Ui

logger = logging.getLogger(__name__)

DriverFactory = Callable[["Config", "Ui"], "Driver"]

_registry: dict[str, DriverFactory] = {}


def register_driver(name: str, factory: DriverFactory) -> None:
    """注册驱动工厂（同名覆盖）"""
    _registry[name] = factory
    logger.debug("已注册驱动: %s", name)


def unregister_driver(name: str) -> None:
    _registry.pop(name, None)


def list_drivers() -> list[str]:
    return sorted(_registry)


def get_driver(name: str, config: Config, ui: Ui) -> Driver:
    """构造驱动；未注册抛 ConfigError，构造失败统一抛 DriverError"""
    factory = _registry.get(name)
    if factory is None:
        raise ConfigError(
            f"未知驱动: {name}（可用: {', '.join(list_drivers()) or '无'}）",
        )
    try:
        return factory(config, ui)
    except GceImageError:
        raise
    except (ValueError, OSError, RuntimeError) as e:
        raise DriverError(f"构造驱动 {name} 失败: {e}") from e


def _memory_factory(config: Config, ui: Ui) -> Driver:
    from gceimage.drivers.memory import MemoryDriver
    return MemoryDriver(project_id=config.project_id)


register_driver("memory", _memory_factory)
