"""核心数据模型

驱动、步骤和产物之间传递的数据类集中定义于此。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# 实例元数据中的启动脚本相关键
STARTUP_SCRIPT_KEY = "startup-script"
STARTUP_SCRIPT_STATUS_KEY = "startup-script-status"
STARTUP_SCRIPT_STATUS_DONE = "done"
STARTUP_SCRIPT_STATUS_ERROR = "error"


class InstanceState(str, Enum):
    """实例状态（取值与 GCE API 保持一致）"""

    PROVISIONING = "PROVISIONING"
    STAGING = "STAGING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    TERMINATED = "TERMINATED"


@dataclass
class Image:
    """磁盘镜像引用"""

    name: str
    project_id: str = ""
    size_gb: int = 0
    family: str = ""
    licenses: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceConfig:
    """创建实例所需的全部参数，由 create_instance 步骤组装后交给驱动"""

    name: str
    zone: str
    machine_type: str
    image: Image
    disk_size_gb: int = 10
    disk_type: str = "pd-standard"
    network: str = "default"
    subnetwork: str = ""
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    preemptible: bool = False
    omit_external_ip: bool = False
    on_host_maintenance: str = "MIGRATE"
    scopes: list[str] = field(default_factory=lambda: [
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/compute",
        "https://www.googleapis.com/auth/devstorage.full_control",
    ])
