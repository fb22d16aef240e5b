"""步骤契约与取消令牌

每个步骤实现 run/cleanup：
  - run 返回 StepAction.CONTINUE 继续，或写入 state.error 后返回 StepAction.HALT
  - cleanup 对每个已执行过 run 的步骤恰好调用一次（无论成功、中止还是取消），
    必须尽力而为，不应影响构建结果
"""

from __future__ import annotations

import re
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gceimage.core.state import StateBag


class StepAction(str, Enum):
    """步骤执行后的流转信号"""

    CONTINUE = "continue"
    HALT = "halt"


class Step(ABC):
    """构建步骤基类"""

    @property
    def name(self) -> str:
        """步骤名：类名去掉 Step 前缀后转 snake_case"""
        cls = type(self).__name__
        if cls.startswith("Step") and len(cls) > 4:
            cls = cls[4:]
        return re.sub(r"(?<!^)(?=[A-Z])", "_", cls).lower()

    @abstractmethod
    def run(self, state: StateBag) -> StepAction:
        """执行步骤"""

    def cleanup(self, state: StateBag) -> None:  # noqa: B027
        """回收本步骤创建的资源（默认无操作）"""

    def halt(self, state: StateBag, err: BaseException) -> StepAction:
        """记录错误并中止：写入 state.error，通过 Ui 提示后返回 HALT"""
        state.error = err
        if state.ui is not None:
            state.ui.error(str(err))
        return StepAction.HALT

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class CancelToken:
    """协作式取消令牌

    由取消线程设置，运行器在两个步骤之间检查；正在执行的步骤不会被打断。
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
