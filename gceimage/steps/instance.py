"""实例生命周期步骤：创建、获取连接信息、停机

实例与启动盘的删除统一放在 StepCreateInstance.cleanup 中，
保证任何失败路径（以及成功路径的收尾）都会回收云上资源。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from gceimage.core.exceptions import ConfigError, DriverError, GceImageError
from gceimage.core.models import STARTUP_SCRIPT_KEY, InstanceConfig, InstanceState
from gceimage.core.step import Step, StepAction

if TYPE_CHECKING:
    from gceimage.core.config import Config
    from gceimage.core.state import StateBag

logger = logging.getLogger(__name__)


def build_metadata(config: Config, ssh_public_key: str | None) -> dict[str, str]:
    """合并用户元数据、启动脚本文件和 SSH 公钥"""
    metadata = {k: str(v) for k, v in config.metadata.items()}
    if config.startup_script_file:
        try:
            metadata[STARTUP_SCRIPT_KEY] = Path(
                config.startup_script_file,
            ).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(
                f"读取启动脚本失败 {config.startup_script_file}: {e}",
            ) from e
    if ssh_public_key:
        metadata["sshKeys"] = f"{config.ssh_username}:{ssh_public_key}"
    return metadata


class StepCreateInstance(Step):
    """从源镜像创建实例并等待其进入 RUNNING"""

    def __init__(self, *, debug: bool = False) -> None:
        self.debug = debug

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        driver = state.driver
        ui = state.ui

        try:
            image = driver.get_image(
                config.source_image, config.source_image_project_id,
            )
        except DriverError as e:
            return self.halt(state, e)
        if image is None:
            return self.halt(
                state, GceImageError(f"找不到源镜像: {config.source_image}"),
            )

        try:
            metadata = build_metadata(config, state.ssh_public_key)
        except ConfigError as e:
            return self.halt(state, e)

        ui.say(f"创建实例 {config.instance_name}...")
        ui.message(f"源镜像: {image.name}")
        ui.message(f"可用区: {config.zone}")
        ui.message(f"机型: {config.machine_type}")
        try:
            driver.run_instance(InstanceConfig(
                name=config.instance_name,
                zone=config.zone,
                machine_type=config.machine_type,
                image=image,
                disk_size_gb=config.disk_size,
                disk_type=config.disk_type,
                network=config.network,
                subnetwork=config.subnetwork,
                tags=list(config.tags),
                metadata=metadata,
                preemptible=config.preemptible,
                omit_external_ip=config.omit_external_ip,
                on_host_maintenance="TERMINATE" if config.preemptible else "MIGRATE",
            ))
        except DriverError as e:
            return self.halt(state, e)

        # 实例已提交创建，此后任何失败都需要 cleanup 回收
        state.instance_name = config.instance_name
        state.disk_name = config.instance_name

        ui.message("等待实例启动...")
        try:
            driver.wait_for_instance(
                InstanceState.RUNNING.value, config.zone, config.instance_name,
                timeout=config.state_timeout_seconds,
            )
        except DriverError as e:
            return self.halt(state, e)

        ui.message("实例已创建")
        if self.debug:
            ui.message(f"实例名: {config.instance_name}")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        config = state.config
        driver = state.driver
        ui = state.ui

        name = state.instance_name
        if name:
            ui.say(f"删除实例 {name}...")
            try:
                driver.delete_instance(config.zone, name)
            except DriverError as e:
                ui.error(f"删除实例失败，请手动删除 {name}: {e}")
            else:
                state.instance_name = None
                ui.message("实例已删除")

        disk = state.disk_name
        if disk:
            ui.say(f"删除磁盘 {disk}...")
            try:
                driver.delete_disk(config.zone, disk)
            except DriverError as e:
                ui.error(f"删除磁盘失败，请手动删除 {disk}: {e}")
            else:
                state.disk_name = None
                ui.message("磁盘已删除")


class StepInstanceInfo(Step):
    """获取实例连接地址，写入 state.instance_ip"""

    def __init__(self, *, debug: bool = False) -> None:
        self.debug = debug

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        driver = state.driver
        name = state.instance_name

        state.ui.say("等待实例就绪...")
        try:
            driver.wait_for_instance(
                InstanceState.RUNNING.value, config.zone, name,
                timeout=config.state_timeout_seconds,
            )
            if config.use_internal_ip:
                ip = driver.get_internal_ip(config.zone, name)
            else:
                ip = driver.get_nat_ip(config.zone, name)
        except DriverError as e:
            return self.halt(state, e)

        if not ip:
            kind = "内网" if config.use_internal_ip else "公网"
            return self.halt(state, GceImageError(f"实例 {name} 没有{kind} IP"))

        state.instance_ip = ip
        if self.debug:
            state.ui.message(f"实例 IP: {ip}")
        logger.info("实例 %s 地址: %s", name, ip)
        return StepAction.CONTINUE


class StepTeardownInstance(Step):
    """停止实例，使启动盘处于一致状态以便制作镜像

    停止后实例元数据仍可读取；实例与磁盘的删除由 StepCreateInstance.cleanup 完成。
    """

    def run(self, state: StateBag) -> StepAction:
        config = state.config
        driver = state.driver
        name = state.instance_name

        state.ui.say(f"停止实例 {name}...")
        try:
            driver.stop_instance(config.zone, name)
            driver.wait_for_instance(
                InstanceState.TERMINATED.value, config.zone, name,
                timeout=config.state_timeout_seconds,
            )
        except DriverError as e:
            return self.halt(state, e)
        state.ui.message("实例已停止")
        return StepAction.CONTINUE
