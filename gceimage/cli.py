"""gceimage 命令行接口"""

from __future__ import annotations

import threading
from typing import Any

import click
import yaml

from gceimage import __version__
from gceimage.core.builder import Builder
from gceimage.core.config import Config
from gceimage.core.exceptions import GceImageError
from gceimage.core.planner import plan_steps
from gceimage.core.state import StateBag
from gceimage.ui import ConsoleUi
from gceimage.utils.logger import setup_logging
from gceimage.utils.yaml_io import dump_yaml, load_yaml


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default="WARNING", help="日志级别")
@click.option("--log-json", is_flag=True, help="以 JSON 格式输出日志（CI 使用）")
def main(log_level: str, log_json: bool) -> None:
    """gceimage - Google Compute Engine 镜像构建器"""
    setup_logging(log_level, json_output=log_json)


def _parse_vars(pairs: tuple[str, ...]) -> dict[str, Any]:
    """解析 key=value 覆盖项，值按 YAML 标量解析（20 → int, true → bool）"""
    result: dict[str, Any] = {}
    for p in pairs:
        if "=" not in p:
            raise click.BadParameter(f"格式应为 key=value: {p}", param_hint="--var")
        k, v = p.split("=", 1)
        try:
            result[k.strip()] = yaml.safe_load(v) if v.strip() else ""
        except yaml.YAMLError:
            result[k.strip()] = v
    return result


def _load_raws(
    template: str, var: tuple[str, ...], dry_run: bool, debug: bool,
) -> list[dict[str, Any]]:
    try:
        raws = [load_yaml(template)]
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"读取模板失败: {e}") from e
    raws.append(_parse_vars(var))
    flags: dict[str, Any] = {}
    if dry_run:
        flags["dry_run"] = True
    if debug:
        flags["debug"] = True
    raws.append(flags)
    return raws


def _common_options(fn: Any) -> Any:
    fn = click.option("--debug", is_flag=True, help="调试模式：每个步骤后暂停")(fn)
    fn = click.option("--dry-run", is_flag=True, help="只演练，不制作镜像")(fn)
    fn = click.option("--var", multiple=True, help="覆盖模板项 key=value（可多次指定）")(fn)
    fn = click.argument("template", type=click.Path(exists=True, dir_okay=False))(fn)
    return fn


def _debug_pause(name: str, phase: str, state: StateBag) -> None:
    action = "执行" if phase == "run" else "清理"
    click.pause(f"[调试] 即将继续，已{action}: {name}。按任意键继续...")


def _print_report(builder: Builder) -> None:
    runner = builder.runner
    if runner is None:
        return
    click.echo("\n=== 步骤执行报告 ===")
    for r in runner.records:
        cleanup = f"  cleanup={r.cleanup}" if r.cleanup else ""
        click.echo(f"  [{r.status:8s}] {r.name:24s} {r.duration:6.1f}s{cleanup}")
    click.echo(f"终态: {runner.status.value}")


@main.command()
@_common_options
def build(template: str, var: tuple[str, ...], dry_run: bool, debug: bool) -> None:
    """执行镜像构建（Ctrl-C 取消并回收已创建的资源）"""
    builder = Builder(pause_fn=_debug_pause)
    try:
        warnings = builder.prepare(*_load_raws(template, var, dry_run, debug))
    except GceImageError as e:
        raise click.ClickException(str(e)) from e
    for w in warnings:
        click.secho(f"警告: {w}", fg="yellow", err=True)

    ui = ConsoleUi(prefix=builder.config.build_name)
    outcome: dict[str, Any] = {}

    def _worker() -> None:
        try:
            outcome["artifact"] = builder.run(ui)
        except Exception as e:  # noqa: BLE001
            outcome["error"] = e

    worker = threading.Thread(target=_worker, name="gceimage-build", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        click.secho("\n收到中断信号，正在取消构建...", fg="yellow", err=True)
        builder.cancel()
        worker.join()

    _print_report(builder)

    err = outcome.get("error")
    if isinstance(err, GceImageError):
        raise click.ClickException(f"构建失败: {err}")
    if err is not None:
        raise err

    artifact = outcome.get("artifact")
    if artifact is None:
        click.echo("dry-run 完成，未制作镜像。")
    else:
        click.secho(f"\n{artifact}", fg="green")


@main.command()
@_common_options
def plan(template: str, var: tuple[str, ...], dry_run: bool, debug: bool) -> None:
    """列出本次构建将要执行的步骤"""
    config = _prepared_config(template, var, dry_run, debug)
    for i, step in enumerate(plan_steps(config), 1):
        click.echo(f"  {i:2d}. {step.name}")


@main.command()
@_common_options
@click.option("--show", is_flag=True, help="输出补全默认值后的生效配置")
def validate(
    template: str, var: tuple[str, ...], dry_run: bool, debug: bool, show: bool,
) -> None:
    """校验构建模板"""
    config = _prepared_config(template, var, dry_run, debug)
    if show:
        click.echo(dump_yaml(config.to_dict()))
    click.secho("模板有效。", fg="green")


def _prepared_config(
    template: str, var: tuple[str, ...], dry_run: bool, debug: bool,
) -> Config:
    config = Config.from_dict(*_load_raws(template, var, dry_run, debug))
    try:
        warnings = config.validate()
    except GceImageError as e:
        raise click.ClickException(str(e)) from e
    for w in warnings:
        click.secho(f"警告: {w}", fg="yellow", err=True)
    return config


if __name__ == "__main__":
    main()
