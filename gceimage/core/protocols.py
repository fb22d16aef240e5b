"""外部协作者协议定义

引擎只通过这些窄接口与云驱动、远程通信器、配置器钩子和 Ui 交互，
具体实现可替换（内存模拟驱动、SSH 通信器、测试替身等）。

使用 typing.Protocol 而非 ABC，使得第三方实现无需继承即可满足协议。
"""

from __future__ import annotations

from typing import Any, Protocol

from gceimage.core.models import Image, InstanceConfig
from gceimage.utils.shell import CommandResult

# =========================================================================
# 云驱动协议
# =========================================================================


class Driver(Protocol):
    """计算实例与镜像的生命周期操作

    所有方法失败时抛出 DriverError；wait_* 方法超时同样抛出 DriverError。
    """

    def image_exists(self, name: str) -> bool:
        """检查当前项目中是否已存在同名镜像"""
        ...

    def get_image(self, name: str, project_id: str = "") -> Image | None:
        """按名称查找镜像，project_id 为空时在当前项目及公共镜像项目中查找"""
        ...

    def create_image(
        self, name: str, *, description: str = "", family: str = "",
        zone: str, disk: str,
    ) -> Image:
        """从磁盘创建镜像，阻塞直到镜像就绪"""
        ...

    def delete_image(self, name: str) -> None:
        ...

    def run_instance(self, cfg: InstanceConfig) -> None:
        """提交实例创建请求（不等待 RUNNING）"""
        ...

    def wait_for_instance(
        self, state: str, zone: str, name: str, *, timeout: float,
    ) -> None:
        """轮询直到实例进入指定状态"""
        ...

    def stop_instance(self, zone: str, name: str) -> None:
        ...

    def delete_instance(self, zone: str, name: str) -> None:
        ...

    def delete_disk(self, zone: str, name: str) -> None:
        ...

    def get_internal_ip(self, zone: str, name: str) -> str:
        ...

    def get_nat_ip(self, zone: str, name: str) -> str:
        ...

    def get_instance_metadata(self, zone: str, name: str, key: str) -> str:
        """读取实例元数据中的某个键，不存在返回空串"""
        ...

    def get_serial_port_output(self, zone: str, name: str) -> str:
        ...

    def create_windows_password(
        self, zone: str, name: str, username: str, *, timeout: float,
    ) -> str:
        """为 Windows 实例重置并取回指定用户的密码"""
        ...


# =========================================================================
# 远程通信协议
# =========================================================================


class Communicator(Protocol):
    """已建立的远程会话"""

    def start(self, cmd: str) -> CommandResult:
        """在远端执行命令并等待结束"""
        ...

    def upload(self, dest: str, data: str) -> None:
        """上传文本内容到远端路径"""
        ...

    def close(self) -> None:
        ...


class Connector(Protocol):
    """按主机地址和认证信息建立远程会话的工厂"""

    def __call__(self, host: str, auth: dict[str, Any]) -> Communicator:
        ...


# =========================================================================
# 配置器钩子与 Ui 协议
# =========================================================================


class Ui(Protocol):
    """构建进度输出"""

    def say(self, message: str) -> None:
        """输出一条主进度信息"""
        ...

    def message(self, message: str) -> None:
        """输出一条次要信息（缩进显示）"""
        ...

    def error(self, message: str) -> None:
        ...


class Hook(Protocol):
    """配置器钩子，provision 步骤以 name="provision" 调用一次"""

    def run(
        self, name: str, ui: Ui, communicator: Communicator | None,
        data: Any = None,
    ) -> None:
        ...
