"""构建配置

从 YAML 构建模板加载 + 命令行覆盖，Config.validate() 统一校验并补全默认值。
已知字段以外的键保留在 extra 中，并作为告警返回。
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from gceimage.core.exceptions import ConfigError
from gceimage.core.models import STARTUP_SCRIPT_KEY
from gceimage.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

COMMUNICATORS = ("ssh", "winrm", "none")

# GCE 资源命名规则
_NAME_RE = re.compile(r"^[a-z](?:[-a-z0-9]{0,61}[a-z0-9])?$")
_DURATION_RE = re.compile(r"^(\d+)([smh]?)$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600}

# 字段注解 → 运行时类型，校验 YAML 或 --var 传入的值
_FIELD_TYPES: dict[str, type] = {
    "str": str, "int": int, "bool": bool,
    "list[str]": list, "dict[str, str]": dict,
}


def parse_duration(value: int | float | str) -> float:
    """解析时长：数字按秒，字符串支持 "30s" / "5m" / "1h" """
    if isinstance(value, bool):
        raise ValueError(f"无效时长: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    m = _DURATION_RE.match(str(value).strip())
    if not m:
        raise ValueError(f"无效时长: {value!r}")
    return float(int(m.group(1)) * _DURATION_UNITS[m.group(2)])


@dataclass
class Config:
    """googlecompute 构建配置"""

    # 项目与位置
    project_id: str = ""
    zone: str = ""
    driver: str = "memory"

    # 源镜像与目标镜像
    source_image: str = ""
    source_image_project_id: str = ""
    image_name: str = ""
    image_description: str = "Created by gceimage"
    image_family: str = ""

    # 实例
    instance_name: str = ""
    machine_type: str = "n1-standard-1"
    disk_size: int = 10
    disk_type: str = "pd-standard"
    network: str = "default"
    subnetwork: str = ""
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    startup_script_file: str = ""
    preemptible: bool = False
    omit_external_ip: bool = False
    use_internal_ip: bool = False
    state_timeout: Any = "5m"

    # 远程通信
    communicator: str = "ssh"
    ssh_username: str = "root"
    ssh_port: int = 22
    ssh_private_key_file: str = ""
    ssh_timeout: Any = "5m"
    winrm_username: str = "gceimage_user"
    winrm_password: str = ""
    winrm_port: int = 5986

    # 配置器：按顺序在实例上执行的 shell 命令
    provisioners: list[str] = field(default_factory=list)

    # 构建行为
    build_name: str = "googlecompute"
    dry_run: bool = False
    debug: bool = False

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, *raws: dict[str, Any]) -> Config:
        """合并多份原始配置（后者覆盖前者），未知键放入 extra"""
        merged: dict[str, Any] = {}
        for raw in raws:
            merged.update(raw or {})
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in merged.items() if k in known}
        cfg = cls(**matched)
        cfg.extra = {k: v for k, v in merged.items() if k not in known}
        return cfg

    @classmethod
    def from_file(cls, path: str, *overrides: dict[str, Any]) -> Config:
        """从 YAML 模板加载配置"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError) as e:
            raise ConfigError(f"读取模板失败: {e}") from e
        cfg = cls.from_dict(data, *overrides)
        logger.info("模板已加载: %s", path)
        return cfg

    @property
    def state_timeout_seconds(self) -> float:
        return parse_duration(self.state_timeout)

    @property
    def ssh_timeout_seconds(self) -> float:
        return parse_duration(self.ssh_timeout)

    @property
    def has_startup_script(self) -> bool:
        return STARTUP_SCRIPT_KEY in self.metadata or bool(self.startup_script_file)

    def validate(self) -> list[str]:
        """校验并补全默认值，返回告警列表；存在错误时抛 ConfigError"""
        errs: list[str] = []
        warnings = [f"未知配置项: {k}" for k in sorted(self.extra)]

        type_errs = self._type_errors()
        if type_errs:
            # 类型不对时后续校验无从进行
            raise ConfigError("构建配置无效", details=type_errs)

        for name in ("project_id", "source_image", "zone"):
            if not getattr(self, name):
                errs.append(f"{name} 为必填项")

        if not self.image_name:
            self.image_name = f"gceimage-{int(time.time())}"
        if not self.instance_name:
            self.instance_name = f"gceimage-{uuid.uuid4()}"

        for name in ("image_name", "instance_name", "image_family"):
            value = getattr(self, name)
            if value and not _NAME_RE.match(value):
                errs.append(
                    f"{name} 无效: {value!r}，须以小写字母开头，"
                    "只含小写字母、数字和连字符，长度不超过 63"
                )

        for name in ("state_timeout", "ssh_timeout"):
            try:
                parse_duration(getattr(self, name))
            except ValueError as e:
                errs.append(f"{name}: {e}")

        if self.disk_size <= 0:
            errs.append(f"disk_size 必须为正数: {self.disk_size}")

        if self.communicator not in COMMUNICATORS:
            errs.append(
                f"communicator 无效: {self.communicator!r}，可选 {', '.join(COMMUNICATORS)}"
            )
        if self.communicator == "winrm" and not self.winrm_username:
            errs.append("winrm 通信器需要 winrm_username")

        if self.startup_script_file and STARTUP_SCRIPT_KEY in self.metadata:
            errs.append(
                f"startup_script_file 与 metadata[{STARTUP_SCRIPT_KEY!r}] 不能同时设置"
            )

        if self.provisioners and self.communicator == "none":
            warnings.append("communicator 为 none，provisioners 将无法在实例上执行")

        if self.omit_external_ip and not self.use_internal_ip:
            errs.append("omit_external_ip 需要同时设置 use_internal_ip")

        if errs:
            raise ConfigError("构建配置无效", details=errs)
        return warnings

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def _type_errors(self) -> list[str]:
        errs: list[str] = []
        for f in fields(self):
            expected = _FIELD_TYPES.get(str(f.type))
            if expected is None:
                continue
            value = getattr(self, f.name)
            # bool 是 int 的子类，需单独排除
            if not isinstance(value, expected) or (
                expected is int and isinstance(value, bool)
            ):
                errs.append(
                    f"{f.name} 类型应为 {expected.__name__}，实际为 "
                    f"{type(value).__name__}: {value!r}"
                )
            elif expected is list and not all(isinstance(v, str) for v in value):
                errs.append(f"{f.name} 的每一项都必须是字符串")
        return errs
