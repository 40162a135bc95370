"""
GitLab 存储诊断 CLI - 容器镜像仓库诊断

列出镜像仓库及其标签，逐个查询标签详情（大小、创建时间），
统计镜像总大小、镜像数量和早于 N 天的镜像数量。
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import (
    cutoff_date,
    error_status,
    fetch_all,
    fetch_one,
    human_bytes,
)
from storage_doctor.jobs.base import DiagnosticError, PendingJob, ReportJob
from storage_doctor.models import (
    GitlabContainerRepository,
    GitlabContainerTag,
    GitlabRawContainerRepository,
    ProjectContext,
    Reportable,
    ReportStatus,
    warning_if,
)

logger = logging.getLogger(__name__)


@dataclass
class ContainerAnalysisReport(Reportable):
    report_status: list[ReportStatus]
    containers: list[GitlabContainerRepository] = field(default_factory=list)

    @property
    def registry_size(self) -> int:
        return sum(t.total_size for cr in self.containers for t in cr.tags)

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class ContainerAnalysisJob(ReportJob[ContainerAnalysisReport]):
    def __init__(self, ctx: ProjectContext, days: int, now: datetime | None = None) -> None:
        self.ctx = ctx
        self.days = days
        self.now = now

    def diagnose(self) -> PendingJob[ContainerAnalysisReport]:
        return PendingJob("Analysing container registry...", lambda _: self._run())

    def _run(self) -> ContainerAnalysisReport:
        if not self.ctx.project.container_registry_enabled:
            return ContainerAnalysisReport(
                report_status=[ReportStatus.na("Container registry is disabled on this project")]
            )
        try:
            repositories = fetch_all(
                self.ctx.client,
                endpoints.registry_repositories(self.ctx.project_path),
                GitlabRawContainerRepository,
                params={"tags": True},
            )
            containers = [self._detailed_repository(r) for r in repositories]
        except DiagnosticError as e:
            logger.error(f"镜像仓库查询失败: {e}")
            return ContainerAnalysisReport(report_status=[error_status(e)])

        ref_date = cutoff_date(self.days, self.now)
        image_count = sum(len(cr.tags) for cr in containers)
        old_image_count = sum(
            1 for cr in containers for t in cr.tags if t.created_at < ref_date
        )
        report = ContainerAnalysisReport(report_status=[], containers=containers)
        limit = self.ctx.config.get("limits.container_registry", 5_000_000_000)
        report.report_status = [
            warning_if(
                report.registry_size > limit,
                f"Container registry size : {human_bytes(report.registry_size)}",
            ),
            ReportStatus.na(
                f"{image_count} images, {old_image_count} are older than {self.days} days"
            ),
        ]
        return report

    def _detailed_repository(self, repository: GitlabRawContainerRepository) -> GitlabContainerRepository:
        tags = [
            fetch_one(
                self.ctx.client,
                endpoints.registry_tag(self.ctx.project_path, repository.id, summary.name),
                GitlabContainerTag,
            )
            for summary in repository.tags
        ]
        return GitlabContainerRepository(
            id=repository.id,
            created_at=repository.created_at,
            tags=tags,
        )
