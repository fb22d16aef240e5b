"""构建产物"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from gceimage import BUILDER_ID

if TYPE_CHECKING:
    from gceimage.core.config import Config
    from gceimage.core.models import Image
    from gceimage.core.protocols import Driver

logger = logging.getLogger(__name__)


class Artifact:
    """一次成功构建得到的 GCE 镜像

    返回给调用方后引擎不再修改；destroy() 通过驱动删除底层镜像。
    """

    builder_id = BUILDER_ID

    def __init__(self, image: Image, driver: Driver, config: Config) -> None:
        self.image = image
        self.driver = driver
        self.config = config

    @property
    def id(self) -> str:
        return self.image.name

    @property
    def files(self) -> list[str]:
        """镜像没有本地文件"""
        return []

    def state(self, name: str) -> Any:
        """查询产物附加信息，未知键返回 None"""
        info: dict[str, Any] = {
            "image": asdict(self.image),
            "image_name": self.image.name,
            "project_id": self.image.project_id or self.config.project_id,
            "zone": self.config.zone,
            "size_gb": self.image.size_gb,
            "licenses": list(self.image.licenses),
        }
        return info.get(name)

    def destroy(self) -> None:
        logger.info("删除镜像: %s", self.image.name)
        self.driver.delete_image(self.image.name)

    def __str__(self) -> str:
        return f"已创建磁盘镜像: {self.image.name}"

    def __repr__(self) -> str:
        return f"<Artifact {self.builder_id} {self.image.name}>"
