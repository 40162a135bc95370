"""
GitLab 存储诊断 CLI - 流水线诊断

列出项目全部流水线（按创建时间从旧到新排序），统计早于 N 天的数量。
排序后的流水线列表供 PipelineCleanJob 使用。
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import cutoff_date, error_status, fetch_all
from storage_doctor.jobs.base import DiagnosticError, PendingJob, ReportJob
from storage_doctor.models import GitlabPipeline, ProjectContext, Reportable, ReportStatus

logger = logging.getLogger(__name__)


@dataclass
class PipelineAnalysisReport(Reportable):
    ctx: ProjectContext
    report_status: list[ReportStatus]
    # 按 created_at 从旧到新
    pipelines: list[GitlabPipeline] = field(default_factory=list)

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


def count_older_than(pipelines: list[GitlabPipeline], ref_date: datetime) -> int:
    """第一个晚于 ref_date 的流水线位置，即其之前都是旧流水线"""
    for idx, pipeline in enumerate(pipelines):
        if pipeline.created_at > ref_date:
            return idx
    return len(pipelines)


class PipelineAnalysisJob(ReportJob[PipelineAnalysisReport]):
    def __init__(self, ctx: ProjectContext, days: int, now: datetime | None = None) -> None:
        self.ctx = ctx
        self.days = days
        self.now = now

    def diagnose(self) -> PendingJob[PipelineAnalysisReport]:
        return PendingJob("Analysing pipelines...", lambda _: self._run())

    def _run(self) -> PipelineAnalysisReport:
        if not self.ctx.project.jobs_enabled:
            return PipelineAnalysisReport(
                ctx=self.ctx,
                report_status=[ReportStatus.na("No CI/CD configured on this project")],
            )
        try:
            pipelines = fetch_all(
                self.ctx.client, endpoints.pipelines(self.ctx.project_path), GitlabPipeline
            )
        except DiagnosticError as e:
            logger.error(f"流水线查询失败: {e}")
            return PipelineAnalysisReport(ctx=self.ctx, report_status=[error_status(e)])

        pipelines.sort(key=lambda p: p.created_at)
        old_pipelines = count_older_than(pipelines, cutoff_date(self.days, self.now))
        return PipelineAnalysisReport(
            ctx=self.ctx,
            report_status=[
                ReportStatus.na(
                    f"{len(pipelines)} pipelines, {old_pipelines} are older than {self.days} days"
                )
            ],
            pipelines=pipelines,
        )
