"""执行配置器钩子"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gceimage.core.exceptions import CommunicatorError, ProvisionError
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)

HOOK_PROVISION = "provision"


class StepProvision(Step):
    """以 provision 名义调用一次钩子，钩子内容对引擎不透明"""

    def run(self, state: StateBag) -> StepAction:
        hook = state.hook
        if hook is None:
            logger.info("未配置配置器钩子，跳过")
            return StepAction.CONTINUE

        state.ui.say("执行配置器...")
        try:
            hook.run(HOOK_PROVISION, state.ui, state.communicator, None)
        except (ProvisionError, CommunicatorError) as e:
            return self.halt(state, e)
        return StepAction.CONTINUE
