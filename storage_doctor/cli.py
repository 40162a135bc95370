#!/usr/bin/env python3
"""
GitLab 存储诊断 CLI - 命令行入口

支持以下命令：
- diagnose: 诊断项目存储占用，并可交互式清理旧流水线和重复包文件
- version: 显示版本信息
"""
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from storage_doctor.config import load_config
from storage_doctor.diagnosis.conf_analysis import ConfAnalysisJob
from storage_doctor.diagnosis.connection import GitlabConnection
from storage_doctor.diagnosis.container_analysis import ContainerAnalysisJob
from storage_doctor.diagnosis.global_storage import GlobalStorageJob
from storage_doctor.diagnosis.job_analysis import JobAnalysisJob
from storage_doctor.diagnosis.package_analysis import PackageAnalysisJob, PackageAnalysisReport
from storage_doctor.diagnosis.package_clean import PackageCleanJob
from storage_doctor.diagnosis.pipeline_analysis import PipelineAnalysisJob, PipelineAnalysisReport
from storage_doctor.diagnosis.pipeline_clean import PipelineCleanJob
from storage_doctor.models import ProjectContext, Report, Reportable
from storage_doctor.report.console import display_pending, print_statuses
from storage_doctor.scoring import compute_score

# 创建 CLI 应用
app = typer.Typer(
    name="storage-doctor",
    help="GitLab 项目存储诊断与清理工具",
    add_completion=False,
)

# 控制台输出
console = Console(stderr=True)

# 配置日志
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    handlers=[RichHandler(console=console, rich_tracebacks=True)],
)
logger = logging.getLogger("storage_doctor")


@app.command()
def diagnose(
    git_path: Path = typer.Argument(Path("."), help="本地 Git 工作目录"),
    url: Optional[str] = typer.Option(None, "--url", help="GitLab 项目地址，优先于 GIT_PATH"),
    batch: bool = typer.Option(False, "--batch", "-b", help="批处理模式：只诊断，不询问清理"),
    days: Optional[int] = typer.Option(None, "--days", "-d", min=0, help="旧任务/流水线的天数阈值"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="配置文件路径"),
    json_out: Optional[Path] = typer.Option(None, "--json", help="将报告树导出为 JSON 文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细日志"),
) -> None:
    """
    诊断项目存储

    依次检查存储总览、CI 任务产物、流水线、包仓库、镜像仓库和仓库设置，
    最后给出存储评分。非批处理模式下会询问是否清理。
    """
    if verbose:
        logging.getLogger().setLevel(logging.INFO)

    # 加载配置
    config = load_config(config_path)
    if days is None:
        days = config.get("analysis.days", 30)

    # 1. 连接项目
    if url:
        connection = GitlabConnection.from_url(url, config)
    else:
        connection = GitlabConnection.from_path(git_path, config)
    print_statuses(console, connection.report())
    if connection.data is None:
        console.print("[red]Diagnosis stops here.[/red]")
        raise typer.Exit(1)

    ctx = connection.data
    reports: list[Report] = [connection.to_report()]
    try:
        _run_diagnosis(ctx, days, batch, reports)
    finally:
        ctx.client.close()

    if json_out:
        _write_json(json_out, reports)


def _run_diagnosis(ctx: ProjectContext, days: int, batch: bool, reports: list[Report]) -> None:
    # 2. 同时启动全部诊断，再按顺序展示
    pending_storage = GlobalStorageJob(ctx).diagnose()
    pending_jobs = JobAnalysisJob(ctx, days).diagnose()
    pending_pipelines = PipelineAnalysisJob(ctx, days).diagnose()
    pending_packages = PackageAnalysisJob(ctx).diagnose()
    pending_containers = ContainerAnalysisJob(ctx, days).diagnose()
    pending_conf = ConfAnalysisJob(ctx).diagnose()

    _collect(display_pending(pending_storage, console), reports)
    job_report = _collect(display_pending(pending_jobs, console), reports)
    pipeline_report = _collect(display_pending(pending_pipelines, console), reports)
    package_report = _collect(display_pending(pending_packages, console), reports)
    _collect(display_pending(pending_containers, console), reports)
    _collect(display_pending(pending_conf, console), reports)
    logger.info(f"诊断完成: {len(reports)} 项报告")

    # 3. 评分
    score = compute_score(
        ctx.statistics,
        ctx.config,
        savable_job_bytes=job_report.savable_bytes if job_report else 0,
        savable_package_bytes=package_report.savable_bytes if package_report else 0,
    )
    print_statuses(console, score.report())
    reports.append(score.to_report())

    if batch:
        return

    # 4. 交互式清理
    if isinstance(pipeline_report, PipelineAnalysisReport) and len(pipeline_report.pipelines) > 1:
        clean_days = _ask_pipeline_days(days)
        if clean_days is not None:
            pending = PipelineCleanJob(pipeline_report, clean_days).remedy()
            _collect(display_pending(pending, console), reports)

    if isinstance(package_report, PackageAnalysisReport) and package_report.obsolete_files:
        if typer.confirm("Delete duplicated package files?", default=False):
            pending = PackageCleanJob(package_report).remedy()
            _collect(display_pending(pending, console), reports)


def _collect(result: Optional[Reportable], reports: list[Report]):
    if result is not None:
        reports.append(result.to_report())
    return result


def _ask_pipeline_days(default_days: int) -> Optional[int]:
    """询问是否删除旧流水线；返回天数，放弃或输入 0 时返回 None"""
    if not typer.confirm("Delete old pipelines?", default=False):
        return None
    clean_days = typer.prompt("From how many days?", default=default_days, type=int)
    if clean_days <= 0:
        return None
    return clean_days


def _write_json(path: Path, reports: list[Report]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in reports], f, ensure_ascii=False, indent=2)
    console.print(f"JSON: {path}")


@app.command()
def version() -> None:
    """显示版本信息"""
    from storage_doctor import __version__
    console.print(f"storage-doctor v{__version__}")


def main() -> None:
    """CLI 主入口"""
    app()


if __name__ == "__main__":
    main()
