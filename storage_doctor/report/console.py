"""
GitLab 存储诊断 CLI - 控制台报告渲染模块

负责把任务结果渲染到终端：
- 有进度通道的任务显示进度条，没有的显示 spinner（时长未知）
- 非交互终端（CI 日志等）只打印百分比里程碑
- 结果按状态类型加上 [✓] [!] [✘] [-] 标记
"""
import logging
from typing import TypeVar

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)

from storage_doctor.jobs.base import PendingJob
from storage_doctor.models import Reportable, ReportStatus, StatusKind

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Reportable)

# 状态标记与样式
STATUS_STYLES = {
    StatusKind.OK: ("[✓]", "green", ""),
    StatusKind.WARNING: ("[!]", "bold yellow", "bold yellow"),
    StatusKind.ERROR: ("[✘]", "bold red", "bold"),
    StatusKind.NA: ("[-]", "bold", "bold"),
}


def format_status(status: ReportStatus, indent: int = 0) -> str:
    """格式化单条状态（rich markup）"""
    symbol, symbol_style, msg_style = STATUS_STYLES[status.kind]
    msg = escape(status.message)
    if msg_style:
        msg = f"[{msg_style}]{msg}[/{msg_style}]"
    return f"{' ' * indent}[{symbol_style}]{escape(symbol)}[/{symbol_style}] {msg}"


def format_statuses(statuses: list[ReportStatus], initial_indent: int = 0) -> list[str]:
    """第一条使用 initial_indent，其余再缩进两格"""
    return [
        format_status(status, initial_indent if idx == 0 else initial_indent + 2)
        for idx, status in enumerate(statuses)
    ]


def print_statuses(console: Console, statuses: list[ReportStatus], initial_indent: int = 0) -> None:
    for line in format_statuses(statuses, initial_indent):
        console.print(line)


def display_pending(pending: PendingJob[T], console: Console) -> T | None:
    """
    展示运行中的任务并等待结果

    Args:
        pending: 任务句柄
        console: 输出控制台

    Returns:
        任务结果；任务异常结束时打印错误并返回 None
    """
    if console.is_terminal:
        _wait_with_progress(pending, console)
    else:
        _wait_no_progress(pending, console)

    try:
        result = pending.join()
    except Exception as e:
        logger.error(f"任务失败 ({pending.pending_msg}): {e}")
        print_statuses(console, [ReportStatus.error(f"{pending.pending_msg} failed : {e}")])
        return None

    print_statuses(console, result.report(), 2 if pending.has_progress else 0)
    return result


def _wait_with_progress(pending: PendingJob, console: Console) -> None:
    if pending.has_progress:
        with Progress(
            TextColumn("  {task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task(pending.pending_msg, total=pending.total)
            for received in pending.iter_progress():
                progress.update(task_id, completed=received)
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(pending.pending_msg, total=None)
            # spinner 由 Progress 的刷新线程驱动
            while not pending.wait(0.1):
                pass


def _wait_no_progress(pending: PendingJob, console: Console) -> None:
    if pending.has_progress:
        console.print(f"  {pending.pending_msg}")
        total = pending.total or 0
        # 每跨过一个 10 % 档位打印一次
        last_decile = 0
        for received in pending.iter_progress():
            decile = received * 10 // total if total else 0
            if decile > last_decile:
                last_decile = decile
                console.print(f"  {decile * 10} %")
    else:
        console.print(f"  {pending.pending_msg} ...")
