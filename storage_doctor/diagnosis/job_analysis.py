"""
GitLab 存储诊断 CLI - CI 任务产物诊断

统计早于 N 天的 CI 任务数量及其产物大小（可回收字节数）。
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import cutoff_date, error_status, fetch_all, human_bytes
from storage_doctor.jobs.base import DiagnosticError, PendingJob, ReportJob
from storage_doctor.models import GitlabJob, ProjectContext, Reportable, ReportStatus

logger = logging.getLogger(__name__)


@dataclass
class JobAnalysisReport(Reportable):
    report_status: list[ReportStatus]
    gitlab_jobs: list[GitlabJob] = field(default_factory=list)
    savable_bytes: int = 0

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class JobAnalysisJob(ReportJob[JobAnalysisReport]):
    def __init__(self, ctx: ProjectContext, days: int, now: datetime | None = None) -> None:
        self.ctx = ctx
        self.days = days
        self.now = now

    def diagnose(self) -> PendingJob[JobAnalysisReport]:
        return PendingJob("Analysing Gitlab jobs...", lambda _: self._run())

    def _run(self) -> JobAnalysisReport:
        if not self.ctx.project.jobs_enabled:
            return JobAnalysisReport(
                report_status=[ReportStatus.na("No CI/CD configured on this project")]
            )
        try:
            jobs = fetch_all(self.ctx.client, endpoints.jobs(self.ctx.project_path), GitlabJob)
        except DiagnosticError as e:
            logger.error(f"CI 任务查询失败: {e}")
            return JobAnalysisReport(report_status=[error_status(e)])

        status, savable_bytes = self._number_jobs(jobs)
        return JobAnalysisReport(
            report_status=[status],
            gitlab_jobs=jobs,
            savable_bytes=savable_bytes,
        )

    def _number_jobs(self, jobs: list[GitlabJob]) -> tuple[ReportStatus, int]:
        ref_date = cutoff_date(self.days, self.now)
        old_count = 0
        old_size = 0
        for job in jobs:
            if job.created_at <= ref_date:
                old_count += 1
                old_size += job.artifacts_size
        return (
            ReportStatus.na(
                f"{old_count} jobs ({human_bytes(old_size)}) are older than {self.days} days"
            ),
            old_size,
        )
