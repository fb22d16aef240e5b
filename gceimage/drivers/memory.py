"""内存模拟驱动

在进程内维护镜像 / 实例 / 磁盘三张表，状态变化即时生效。
可通过 fail_on 注入指定方法的失败，便于演练失败与清理路径。
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field

from gceimage.core.exceptions import DriverError
from gceimage.core.models import (
    STARTUP_SCRIPT_KEY,
    STARTUP_SCRIPT_STATUS_DONE,
    STARTUP_SCRIPT_STATUS_KEY,
    Image,
    InstanceConfig,
    InstanceState,
)

logger = logging.getLogger(__name__)

# get_image 在当前项目找不到时依次查找的公共镜像项目
PUBLIC_IMAGE_PROJECTS = (
    "debian-cloud", "centos-cloud", "ubuntu-os-cloud",
    "windows-cloud", "cos-cloud", "rhel-cloud",
)


@dataclass
class _Instance:
    cfg: InstanceConfig
    status: str = InstanceState.RUNNING.value
    internal_ip: str = ""
    nat_ip: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    serial_output: str = ""


class MemoryDriver:
    """Driver 协议的内存实现"""

    def __init__(
        self, project_id: str = "demo-project", *,
        fail_on: set[str] | None = None,
        public_images: dict[str, Image] | None = None,
    ) -> None:
        self.project_id = project_id
        self.fail_on = set(fail_on or ())
        self.images: dict[str, Image] = {}
        self.public_images: dict[str, Image] = dict(public_images or {
            "debian-8-jessie-v20160803": Image(
                name="debian-8-jessie-v20160803",
                project_id="debian-cloud", size_gb=10,
            ),
        })
        self.instances: dict[str, _Instance] = {}
        self.disks: dict[str, int] = {}
        self.calls: list[str] = []
        self._lock = threading.Lock()
        self._ip_seq = 0

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise DriverError(f"模拟失败: {method}")

    def _instance(self, zone: str, name: str) -> _Instance:
        inst = self.instances.get(name)
        if inst is None or inst.cfg.zone != zone:
            raise DriverError(f"实例不存在: {zone}/{name}")
        return inst

    # ---- 镜像 ----

    def image_exists(self, name: str) -> bool:
        self._enter("image_exists")
        return name in self.images

    def get_image(self, name: str, project_id: str = "") -> Image | None:
        self._enter("get_image")
        if (not project_id or project_id == self.project_id) and name in self.images:
            return self.images[name]
        image = self.public_images.get(name)
        if image is None:
            return None
        if project_id and image.project_id != project_id:
            return None
        if not project_id and image.project_id not in PUBLIC_IMAGE_PROJECTS:
            return None
        return image

    def create_image(
        self, name: str, *, description: str = "", family: str = "",
        zone: str, disk: str,
    ) -> Image:
        self._enter("create_image")
        with self._lock:
            if name in self.images:
                raise DriverError(f"镜像已存在: {name}")
            size = self.disks.get(disk)
            if size is None:
                raise DriverError(f"磁盘不存在: {zone}/{disk}")
            image = Image(
                name=name, project_id=self.project_id,
                size_gb=size, family=family,
            )
            self.images[name] = image
        logger.info("[memory] 镜像已创建: %s (%s)", name, description)
        return image

    def delete_image(self, name: str) -> None:
        self._enter("delete_image")
        with self._lock:
            if self.images.pop(name, None) is None:
                raise DriverError(f"镜像不存在: {name}")

    # ---- 实例 ----

    def run_instance(self, cfg: InstanceConfig) -> None:
        self._enter("run_instance")
        with self._lock:
            if cfg.name in self.instances:
                raise DriverError(f"实例已存在: {cfg.name}")
            self._ip_seq += 1
            metadata = dict(cfg.metadata)
            if STARTUP_SCRIPT_KEY in metadata:
                # 模拟启动脚本随实例启动立即完成
                metadata[STARTUP_SCRIPT_STATUS_KEY] = STARTUP_SCRIPT_STATUS_DONE
            self.instances[cfg.name] = _Instance(
                cfg=cfg,
                internal_ip=f"10.240.0.{self._ip_seq}",
                nat_ip="" if cfg.omit_external_ip else f"203.0.113.{self._ip_seq}",
                metadata=metadata,
            )
            self.disks[cfg.name] = cfg.disk_size_gb

    def wait_for_instance(
        self, state: str, zone: str, name: str, *, timeout: float,
    ) -> None:
        self._enter("wait_for_instance")
        inst = self._instance(zone, name)
        if inst.status != state:
            raise DriverError(
                f"等待实例 {name} 进入 {state} 超时 ({timeout:.0f}s)，当前 {inst.status}",
            )

    def stop_instance(self, zone: str, name: str) -> None:
        self._enter("stop_instance")
        self._instance(zone, name).status = InstanceState.TERMINATED.value

    def delete_instance(self, zone: str, name: str) -> None:
        self._enter("delete_instance")
        self._instance(zone, name)
        with self._lock:
            del self.instances[name]

    def delete_disk(self, zone: str, name: str) -> None:
        self._enter("delete_disk")
        with self._lock:
            if self.disks.pop(name, None) is None:
                raise DriverError(f"磁盘不存在: {zone}/{name}")

    def get_internal_ip(self, zone: str, name: str) -> str:
        self._enter("get_internal_ip")
        return self._instance(zone, name).internal_ip

    def get_nat_ip(self, zone: str, name: str) -> str:
        self._enter("get_nat_ip")
        return self._instance(zone, name).nat_ip

    def get_instance_metadata(self, zone: str, name: str, key: str) -> str:
        self._enter("get_instance_metadata")
        return self._instance(zone, name).metadata.get(key, "")

    def get_serial_port_output(self, zone: str, name: str) -> str:
        self._enter("get_serial_port_output")
        return self._instance(zone, name).serial_output

    def create_windows_password(
        self, zone: str, name: str, username: str, *, timeout: float,
    ) -> str:
        self._enter("create_windows_password")
        self._instance(zone, name)
        return secrets.token_urlsafe(12)
