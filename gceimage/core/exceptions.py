"""统一异常体系

所有业务异常继承 GceImageError，CLI 层据此输出友好提示并返回非零退出码。
"""

from __future__ import annotations


class GceImageError(Exception):
    """构建器基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(GceImageError):
    """构建模板缺失或内容无效"""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []

    def __str__(self) -> str:
        if not self.details:
            return super().__str__()
        lines = "\n".join(f"  * {d}" for d in self.details)
        return f"{super().__str__()}\n{lines}"


class DriverError(GceImageError):
    """云驱动构造或调用失败"""

    code = "DRIVER_ERROR"


class CommunicatorError(GceImageError):
    """远程登录会话建立或命令执行失败"""

    code = "COMMUNICATOR_ERROR"


class ProvisionError(GceImageError):
    """配置器（provisioner）执行失败"""

    code = "PROVISION_ERROR"


class ExecutionError(GceImageError):
    """本地子进程执行失败"""

    code = "EXECUTION_ERROR"


class StepError(GceImageError):
    """步骤执行时抛出未处理异常，由运行器包装后写入状态"""

    code = "STEP_ERROR"

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"步骤 {step} 异常: {message}")
        self.step = step


class BuildError(GceImageError):
    """构建失败：某个步骤写入了 error 并中止了运行"""

    code = "BUILD_ERROR"

    def __init__(self, message: str, step: str = "") -> None:
        super().__init__(f"[{step}] {message}" if step else message)
        self.step = step


class BuildCancelledError(GceImageError):
    """构建被外部取消"""

    code = "BUILD_CANCELLED"


class InternalError(GceImageError):
    """内部一致性错误（例如运行结束既无镜像也无错误）"""

    code = "INTERNAL_ERROR"
