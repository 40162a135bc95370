"""
GitLab 存储诊断 CLI - 存储总览诊断

根据项目统计信息给出存储总量，以及 Git 仓库、CI 产物、包仓库的占比。
不需要额外的网络请求。
"""
import logging
from dataclasses import dataclass

from storage_doctor.diagnosis.common import human_bytes, percent
from storage_doctor.jobs.base import PendingJob, ReportJob
from storage_doctor.models import (
    ProjectContext,
    Report,
    Reportable,
    ReportStatus,
    warning_if,
)

logger = logging.getLogger(__name__)


@dataclass
class GlobalStorageReport(Reportable):
    """存储总览结果，details 中是各部分的占比"""
    storage: Report

    def report(self) -> list[ReportStatus]:
        return [self.storage.global_status] + [d.global_status for d in self.storage.details]

    def to_report(self) -> Report:
        return self.storage


class GlobalStorageJob(ReportJob[GlobalStorageReport]):
    def __init__(self, ctx: ProjectContext) -> None:
        self.ctx = ctx

    def diagnose(self) -> PendingJob[GlobalStorageReport]:
        return PendingJob("Analysing storage...", lambda _: self._analysis_storage())

    def _analysis_storage(self) -> GlobalStorageReport:
        stats = self.ctx.statistics
        config = self.ctx.config
        logger.info(f"项目存储: {stats.storage_size} 字节")
        status = warning_if(
            stats.storage_size > config.get("limits.storage", 2_000_000_000),
            f"Storage size : {human_bytes(stats.storage_size)}",
        )
        details = [
            self._part(
                "Git repository size",
                stats.repository_size,
                config.get("limits.repository", 100_000_000),
            ),
            self._part(
                "Job artifacts size",
                stats.job_artifacts_size,
                config.get("limits.job_artifacts", 500_000_000),
            ),
            self._part(
                "Package registry size",
                stats.packages_size,
                config.get("limits.packages", 1_000_000_000),
            ),
        ]
        return GlobalStorageReport(storage=Report(global_status=status, details=details))

    def _part(self, label: str, size: int, limit: int) -> Report:
        total = self.ctx.statistics.storage_size
        msg = f"{label} : {human_bytes(size)} ({percent(size, total)})"
        return warning_if(size > limit, msg).to_report()
