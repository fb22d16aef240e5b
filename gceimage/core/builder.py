"""构建入口

Builder 串起一次构建：
  prepare() 校验配置 → run() 构造驱动、初始化状态、规划步骤、运行、提取结果。

结果提取策略：
  - 状态中有 error → 抛 BuildError（携带失败步骤名，异常链保留原因）
  - 运行被取消 → 抛 BuildCancelledError
  - 状态中有 image → 返回 Artifact
  - dry-run 正常结束 → 返回 None（不制作镜像）
  - 其余情况（既无镜像也无错误）→ 抛 InternalError
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from gceimage.core.artifact import Artifact
from gceimage.core.config import Config
from gceimage.core.exceptions import (
    BuildCancelledError,
    BuildError,
    InternalError,
)
from gceimage.core.planner import plan_steps
from gceimage.core.runner import RunStatus, StepRunner
from gceimage.core.state import StateBag
from gceimage.core.step import CancelToken

if TYPE_CHECKING:
    from gceimage.core.protocols import Connector, Driver, Hook, Ui
    from gceimage.core.runner import PauseFn

logger = logging.getLogger(__name__)


class Builder:
    """googlecompute 镜像构建器"""

    def __init__(
        self, *,
        connector: Connector | None = None,
        pause_fn: PauseFn | None = None,
    ) -> None:
        self.config: Config | None = None
        self.runner: StepRunner | None = None
        self.state: StateBag | None = None
        self._token: CancelToken | None = None
        self._connector = connector
        self._pause_fn = pause_fn
        self._lock = threading.Lock()

    def prepare(self, *raws: dict[str, Any]) -> list[str]:
        """合并并校验原始配置，返回告警；配置无效时抛 ConfigError"""
        config = Config.from_dict(*raws)
        warnings = config.validate()
        self.config = config
        return warnings

    def run(self, ui: Ui, hook: Hook | None = None) -> Artifact | None:
        """执行构建，成功返回 Artifact，失败抛 GceImageError 子类"""
        config = self.config
        if config is None:
            raise InternalError("run() 之前必须先调用 prepare()")

        # 令牌先于驱动构造发布，构造期间的取消同样生效
        token = CancelToken()
        with self._lock:
            self._token = token
            self.runner = None
            self.state = None

        driver = self._make_driver(config, ui)
        if hook is None and config.provisioners:
            from gceimage.hook import ShellProvisionHook
            hook = ShellProvisionHook(config.provisioners)

        state = StateBag()
        state.config = config
        state.driver = driver
        state.hook = hook
        state.ui = ui

        steps = plan_steps(config, connector=self._connector)
        runner = StepRunner(
            steps, debug=config.debug, pause_fn=self._pause_fn, token=token,
        )
        with self._lock:
            # 检查与发布在同一把锁内，取消请求要么在此被发现，要么转交给运行器
            if token.cancelled:
                logger.info("构建在开始执行步骤前被取消")
                raise BuildCancelledError("构建已取消")
            self.runner = runner
            self.state = state

        logger.info(
            "开始构建 %s: %d 个步骤 (dry_run=%s)",
            config.build_name, len(steps), config.dry_run,
        )
        status = runner.run(state)
        return self._extract(state, status, driver, config)

    def cancel(self) -> None:
        """取消进行中的构建；尚未开始或已结束时无效果"""
        with self._lock:
            runner = self.runner
            if runner is None and self._token is not None:
                logger.info("构建尚在准备阶段，已记录取消请求")
                self._token.cancel()
                return
        if runner is not None:
            logger.info("正在取消步骤运行器...")
            runner.cancel()

    @staticmethod
    def _make_driver(config: Config, ui: Ui) -> Driver:
        from gceimage.drivers import get_driver
        return get_driver(config.driver, config, ui)

    @staticmethod
    def _extract(
        state: StateBag, status: RunStatus, driver: Driver, config: Config,
    ) -> Artifact | None:
        err = state.error
        if err is not None:
            if isinstance(err, BuildCancelledError):
                raise err
            step = state.failed_step or ""
            raise BuildError(str(err), step=step) from err

        if status is RunStatus.CANCELLED:
            raise BuildCancelledError("构建已取消")

        image = state.image
        if image is not None:
            return Artifact(image=image, driver=driver, config=config)

        if config.dry_run and status is RunStatus.COMPLETED:
            logger.info("dry-run 完成，未制作镜像")
            return None

        logger.error("运行结束但状态中既无镜像也无错误 (status=%s)", status.value)
        raise InternalError("构建结束但未产出镜像，也未报告错误")
