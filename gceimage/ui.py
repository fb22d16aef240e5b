"""控制台进度输出"""

from __future__ import annotations

import threading

import click


class ConsoleUi:
    """基于 click 的 Ui 实现，加锁保证多线程输出不交错"""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = f"{prefix}: " if prefix else ""
        self._lock = threading.Lock()

    def say(self, message: str) -> None:
        with self._lock:
            click.secho(f"==> {self.prefix}{message}", bold=True)

    def message(self, message: str) -> None:
        with self._lock:
            click.echo(f"    {self.prefix}{message}")

    def error(self, message: str) -> None:
        with self._lock:
            click.secho(f"==> {self.prefix}{message}", fg="red", err=True)
