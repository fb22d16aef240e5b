"""步骤规划

根据配置为一次构建生成有序步骤列表。纯函数：相同配置总是得到相同的步骤序列，
每个生命周期步骤至多出现一次。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gceimage.steps import (
    StepCheckExistingImage,
    StepConnect,
    StepCreateImage,
    StepCreateInstance,
    StepCreateSSHKey,
    StepCreateWindowsPassword,
    StepInstanceInfo,
    StepProvision,
    StepTeardownInstance,
    StepWaitStartupScript,
)

if TYPE_CHECKING:
    from gceimage.core.config import Config
    from gceimage.core.protocols import Connector
    from gceimage.core.step import Step

logger = logging.getLogger(__name__)


def plan_steps(config: Config, *, connector: Connector | None = None) -> list[Step]:
    """生成步骤列表

    固定前缀为 8 个步骤（镜像检查 → … → 停机）；
    非 dry-run 时追加镜像制作，配置了启动脚本时追加启动脚本等待。
    """
    steps: list[Step] = [
        StepCheckExistingImage(),
        StepCreateSSHKey(
            debug=config.debug,
            debug_key_path=f"gce_{config.build_name}.pem",
            private_key_file=config.ssh_private_key_file,
        ),
        StepCreateInstance(debug=config.debug),
        StepCreateWindowsPassword(
            debug=config.debug,
            debug_key_path=f"gce_windows_{config.build_name}.pem",
        ),
        StepInstanceInfo(debug=config.debug),
        StepConnect(connector=connector),
        StepProvision(),
        StepTeardownInstance(),
    ]

    if not config.dry_run:
        steps.append(StepCreateImage())
    if config.has_startup_script:
        steps.append(StepWaitStartupScript())

    logger.debug("规划步骤: %s", [s.name for s in steps])
    return steps
