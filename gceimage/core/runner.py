"""步骤运行器 - 构建引擎核心

职责：
- 按计划顺序在单个线程中逐个执行步骤
- 任一步骤返回 HALT（或抛出异常）后停止分派后续步骤
- 无论成功、中止还是取消，对已执行的步骤按逆序各调用一次 cleanup
- 支持从其他线程协作式取消：只在两个步骤之间检查取消信号

状态机: IDLE → RUNNING → {COMPLETED, HALTED, CANCELLED}
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from gceimage.core.exceptions import InternalError, StepError
from gceimage.core.state import KEY_CANCELLED, KEY_HALTED, StateBag
from gceimage.core.step import CancelToken, Step, StepAction

logger = logging.getLogger(__name__)

# 调试模式下的暂停回调: (步骤名, 阶段 "run"/"cleanup", 状态)
PauseFn = Callable[[str, str, StateBag], None]


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted"
    CANCELLED = "cancelled"


@dataclass
class StepRecord:
    """单个步骤的执行记录（供 CLI 报告使用）"""

    name: str
    status: str = "pending"  # done / halted / error
    duration: float = 0.0
    cleanup: str = ""  # done / failed


class StepRunner:
    """顺序执行步骤列表，保证逆序清理"""

    def __init__(
        self,
        steps: Iterable[Step],
        *,
        debug: bool = False,
        pause_fn: PauseFn | None = None,
        token: CancelToken | None = None,
    ) -> None:
        self.steps: list[Step] = list(steps)
        self.debug = debug
        self.pause_fn = pause_fn
        self.records: list[StepRecord] = []
        self._token = token or CancelToken()
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._done.set()
        self._status = RunStatus.IDLE
        self._state: StateBag | None = None

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return self._status

    def run(self, state: StateBag) -> RunStatus:
        """执行全部步骤，返回终态"""
        with self._lock:
            if self._status is RunStatus.RUNNING:
                raise InternalError("步骤运行器已在运行中")
            self._status = RunStatus.RUNNING
            self._state = state
            self._done.clear()
        if self._token.cancelled:
            # 启动前已取消
            state.put(KEY_CANCELLED, True)

        self.records = []
        executed: list[tuple[Step, StepRecord]] = []
        # 异常逃逸时以 HALTED 收尾
        final = RunStatus.HALTED
        try:
            for step in self.steps:
                if self._token.cancelled:
                    logger.info("检测到取消信号，停止分派剩余步骤")
                    state.put(KEY_HALTED, True)
                    final = RunStatus.CANCELLED
                    break

                record = StepRecord(name=step.name)
                self.records.append(record)
                executed.append((step, record))

                if self._dispatch(step, record, state) is StepAction.HALT:
                    state.put(KEY_HALTED, True)
                    if state.failed_step is None:
                        state.failed_step = step.name
                    final = (
                        RunStatus.CANCELLED if self._token.cancelled
                        else RunStatus.HALTED
                    )
                    logger.info(
                        "步骤 %s 中止了构建", step.name, extra={"step": step.name},
                    )
                    break
                if not self._pause_after_run(step, state):
                    break
            else:
                final = RunStatus.COMPLETED
        finally:
            # 任何退出路径都要回收已执行的步骤
            try:
                self._cleanup(executed, state)
            finally:
                self._finish(final)

        logger.info(
            "步骤运行结束: status=%s, 已执行 %d/%d",
            final.value, len(executed), len(self.steps),
        )
        return final

    def cancel(self) -> None:
        """请求取消（线程安全、幂等）；运行已结束时无效果"""
        with self._lock:
            if self._status not in (RunStatus.IDLE, RunStatus.RUNNING):
                return
            self._token.cancel()
            state = self._state
        if state is not None:
            # 让正在轮询的步骤也能观察到取消
            state.put(KEY_CANCELLED, True)
        logger.info("已请求取消步骤运行器")

    def wait(self, timeout: float | None = None) -> bool:
        """阻塞直到当前运行结束，返回是否在超时前结束"""
        return self._done.wait(timeout)

    # ---- 内部实现 ----

    def _dispatch(
        self, step: Step, record: StepRecord, state: StateBag,
    ) -> StepAction:
        logger.debug("执行步骤: %s", step.name, extra={"step": step.name})
        start = time.monotonic()
        try:
            action = step.run(state)
        except Exception as e:  # noqa: BLE001
            logger.exception("步骤 %s 抛出异常", step.name, extra={"step": step.name})
            err = StepError(step.name, str(e))
            err.__cause__ = e
            state.error = err
            action = StepAction.HALT
        else:
            if not isinstance(action, StepAction):
                state.error = InternalError(
                    f"步骤 {step.name} 返回了无效信号: {action!r}"
                )
                action = StepAction.HALT
        record.duration = time.monotonic() - start

        if action is StepAction.CONTINUE:
            record.status = "done"
        else:
            record.status = "error" if state.error is not None else "halted"
        return action

    def _cleanup(
        self, executed: list[tuple[Step, StepRecord]], state: StateBag,
    ) -> None:
        for step, record in reversed(executed):
            try:
                self._pause(step.name, "cleanup", state)
            except Exception:  # noqa: BLE001
                logger.exception("调试暂停失败: %s", step.name, extra={"step": step.name})
            try:
                step.cleanup(state)
            except Exception:  # noqa: BLE001
                # 清理失败只记录，不覆盖构建主结果
                logger.exception(
                    "步骤 %s 清理失败", step.name, extra={"step": step.name},
                )
                record.cleanup = "failed"
            else:
                record.cleanup = "done"

    def _pause_after_run(self, step: Step, state: StateBag) -> bool:
        """调试暂停；暂停回调出错时按中止处理，返回 False"""
        try:
            self._pause(step.name, "run", state)
        except Exception as e:  # noqa: BLE001
            logger.exception("调试暂停失败: %s", step.name, extra={"step": step.name})
            err = InternalError(f"步骤 {step.name} 之后的调试暂停失败: {e}")
            err.__cause__ = e
            state.error = err
            state.failed_step = step.name
            state.put(KEY_HALTED, True)
            return False
        return True

    def _finish(self, final: RunStatus) -> None:
        with self._lock:
            self._status = final
            self._state = None
            self._done.set()

    def _pause(self, name: str, phase: str, state: StateBag) -> None:
        if self.debug and self.pause_fn is not None and not self._token.cancelled:
            self.pause_fn(name, phase, state)
