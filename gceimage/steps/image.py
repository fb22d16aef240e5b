"""从启动盘制作镜像"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gceimage.core.exceptions import DriverError
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)


class StepCreateImage(Step):
    """以实例启动盘创建镜像，成功后写入 state.image

    若镜像创建后构建仍被中止或取消（例如后续的启动脚本检查失败），
    cleanup 删除这份不完整的镜像。
    """

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        ui = state.ui
        ui.say(f"创建镜像 {config.image_name}...")
        try:
            image = state.driver.create_image(
                config.image_name,
                description=config.image_description,
                family=config.image_family,
                zone=config.zone,
                disk=state.disk_name or config.instance_name,
            )
        except DriverError as e:
            return self.halt(state, e)
        state.image = image
        ui.message(f"镜像已创建: {image.name}")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        image = state.image
        if image is None or not state.halted:
            return
        state.ui.say(f"构建未完成，删除镜像 {image.name}...")
        try:
            state.driver.delete_image(image.name)
        except DriverError as e:
            state.ui.error(f"删除镜像失败，请手动删除 {image.name}: {e}")
            return
        state.image = None
