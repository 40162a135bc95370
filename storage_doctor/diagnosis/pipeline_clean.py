"""
GitLab 存储诊断 CLI - 流水线清理

删除早于 N 天的流水线（连同其任务产物）。

保留规则：
- 流水线按创建时间从旧到新遍历，遇到第一个不够旧的即停止，
  因此可删除的集合总是列表的一段连续前缀
- 全项目最旧的那条流水线永远不删除，保证项目至少留有一条历史记录

单条删除的响应不包含释放的字节数，所以删除完成后重新查询项目统计，
用删除前后的 job_artifacts_size 差值作为实际节省的空间。
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import cutoff_date, fetch_one, human_bytes
from storage_doctor.diagnosis.pipeline_analysis import PipelineAnalysisReport
from storage_doctor.jobs.base import DiagnosticError, PendingJob, ProgressCallback, RemedyJob
from storage_doctor.jobs.remedy import DEFAULT_MAX_ATTEMPTS, delete_with_retry, run_deletions
from storage_doctor.models import (
    GitlabPipeline,
    Project,
    ProjectContext,
    Reportable,
    ReportStatus,
)

logger = logging.getLogger(__name__)


def select_deletable_pipelines(
    pipelines: list[GitlabPipeline],
    days: int,
    now: datetime | None = None,
) -> list[GitlabPipeline]:
    """
    选出可删除的流水线

    Args:
        pipelines: 按 created_at 从旧到新排序的流水线（调用方负责排序）
        days: 保留天数
        now: 当前时间，默认取系统时间

    Returns:
        可删除的流水线，保持输入顺序；不包含最旧的一条
    """
    ref_date = cutoff_date(days, now)
    eligible: list[GitlabPipeline] = []
    for idx, pipeline in enumerate(pipelines):
        if pipeline.created_at > ref_date:
            break
        if idx == 0:
            continue
        eligible.append(pipeline)
    return eligible


def oldest_is_preserved(
    pipelines: list[GitlabPipeline],
    days: int,
    now: datetime | None = None,
) -> bool:
    """最旧的流水线按时间本应被删除，但被保留下来"""
    return bool(pipelines) and pipelines[0].created_at <= cutoff_date(days, now)


def compute_saved_bytes(ctx: ProjectContext) -> int:
    """
    重新查询项目统计，计算删除前后 CI 产物大小的差值

    查询失败时视为没有变化；外部并发写入导致新值更大时返回 0。
    """
    old_size = ctx.statistics.job_artifacts_size
    try:
        refreshed = fetch_one(
            ctx.client, endpoints.project(ctx.project_path), Project, params={"statistics": True}
        )
        new_size = refreshed.statistics.job_artifacts_size
    except DiagnosticError as e:
        logger.warning(f"重新查询项目统计失败，无法计算节省空间: {e}")
        new_size = old_size
    return max(0, old_size - new_size)


@dataclass
class PipelineCleanReport(Reportable):
    report_status: list[ReportStatus]
    saved_bytes: int = 0
    deleted_pipelines: list[GitlabPipeline] = field(default_factory=list)

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class PipelineCleanJob(RemedyJob[PipelineCleanReport]):
    def __init__(
        self,
        pipeline_report: PipelineAnalysisReport,
        days: int,
        now: datetime | None = None,
    ) -> None:
        if days < 0:
            raise ValueError("Number of days must be 0 or superior")
        self.pipeline_report = pipeline_report
        self.ctx = pipeline_report.ctx
        self.days = days
        self.now = now

    def remedy(self) -> PendingJob[PipelineCleanReport]:
        pipelines = self.pipeline_report.pipelines
        eligible = select_deletable_pipelines(pipelines, self.days, self.now)
        preserved = pipelines[0] if oldest_is_preserved(pipelines, self.days, self.now) else None
        logger.info(f"待删除流水线: {len(eligible)} / {len(pipelines)}")
        return PendingJob(
            "Deleting old pipelines",
            lambda progress: self._run(eligible, preserved, progress),
            total=len(eligible),
        )

    def _delete(self, pipeline: GitlabPipeline) -> None:
        delete_with_retry(
            self.ctx.client,
            endpoints.pipeline(self.ctx.project_path, pipeline.id),
            pipeline.id,
            "pipelines",
            max_attempts=self.ctx.config.get("remedy.max_attempts", DEFAULT_MAX_ATTEMPTS),
            wait_sec=self.ctx.config.get("remedy.retry_wait_sec", 0.0),
        )

    def _run(
        self,
        eligible: list[GitlabPipeline],
        preserved: GitlabPipeline | None,
        progress: ProgressCallback | None,
    ) -> PipelineCleanReport:
        outcome = run_deletions(eligible, self._delete, progress)
        # 中途失败时已删除的流水线同样释放了空间
        saved_bytes = compute_saved_bytes(self.ctx) if outcome.deleted else 0

        report_status = [
            ReportStatus.ok(
                f"Deleted {len(outcome.deleted)} pipelines, {human_bytes(saved_bytes)} saved."
            )
        ]
        if preserved is not None:
            report_status.append(
                ReportStatus.na(f"Pipeline {preserved.id} kept : the oldest pipeline is never deleted")
            )
        if outcome.error is not None:
            report_status.append(
                ReportStatus.error(f"Pipeline {outcome.error.item_id} - Error : {outcome.error.message}")
            )
        return PipelineCleanReport(
            report_status=report_status,
            saved_bytes=saved_bytes,
            deleted_pipelines=outcome.deleted,
        )
