"""镜像冲突检查"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gceimage.core.exceptions import DriverError, GceImageError
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)


class StepCheckExistingImage(Step):
    """目标镜像名已存在时提前失败，避免实例创建后才发现冲突"""

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        state.ui.say("检查镜像是否已存在...")
        try:
            exists = state.driver.image_exists(config.image_name)
        except DriverError as e:
            return self.halt(state, e)
        if exists:
            return self.halt(
                state, GceImageError(f"镜像 {config.image_name} 已存在"),
            )
        logger.info("镜像名可用: %s", config.image_name)
        return StepAction.CONTINUE
