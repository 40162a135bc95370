"""
GitLab 存储诊断 CLI - 仓库配置诊断

检查两项会影响存储增长的项目设置：
- 容器镜像过期清理策略是否开启
- 包仓库重复文件的保留策略（通过 GraphQL 查询）
任一项不理想时，附带项目设置页面的链接。
"""
import logging
from dataclasses import dataclass

from storage_doctor.api import endpoints
from storage_doctor.api.client import GitlabError
from storage_doctor.jobs.base import PendingJob, ReportJob
from storage_doctor.models import ProjectContext, Reportable, ReportStatus

logger = logging.getLogger(__name__)

ONE_PACKAGE_FILE = "ONE_PACKAGE_FILE"


@dataclass
class ConfAnalysisReport(Reportable):
    report_status: list[ReportStatus]

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class ConfAnalysisJob(ReportJob[ConfAnalysisReport]):
    def __init__(self, ctx: ProjectContext) -> None:
        self.ctx = ctx

    def diagnose(self) -> PendingJob[ConfAnalysisReport]:
        return PendingJob("Analysing registry settings...", lambda _: self._run())

    def _run(self) -> ConfAnalysisReport:
        report_container = self._report_container_policy()
        report_duplicate = self._report_duplicate_policy()
        report_status = [report_container, report_duplicate]
        if not report_container.is_ok or not report_duplicate.is_ok:
            settings_url = f"{self.ctx.project.web_url}/-/settings/packages_and_registries"
            report_status.append(ReportStatus.na(f"Fix these settings here : {settings_url}"))
        return ConfAnalysisReport(report_status=report_status)

    def _report_container_policy(self) -> ReportStatus:
        project = self.ctx.project
        policy = project.container_expiration_policy
        if not project.container_registry_enabled or (policy is not None and policy.enabled):
            return ReportStatus.ok("Container registry cleanup policy is enabled")
        return ReportStatus.warning("Container registry cleanup policy is disabled")

    def _report_duplicate_policy(self) -> ReportStatus:
        policy = self._get_duplicate_policy()
        if policy is None:
            return ReportStatus.error("Unable to read the package duplicate files policy")
        if policy == ONE_PACKAGE_FILE:
            return ReportStatus.ok("Package registry keeps only one file per duplicated asset")
        return ReportStatus.warning(
            f"Package registry keeps duplicated assets ({policy})"
        )

    def _get_duplicate_policy(self) -> str | None:
        try:
            data = self.ctx.client.graphql(
                endpoints.PACKAGE_DUPLICATE_POLICY_QUERY,
                {"projectPath": self.ctx.project.path_with_namespace},
            )
        except GitlabError as e:
            logger.error(f"包重复文件策略查询失败: {e}")
            return None
        project = data.get("project") or {}
        policy = project.get("packagesCleanupPolicy") or {}
        return policy.get("keepNDuplicatedPackageFiles")
