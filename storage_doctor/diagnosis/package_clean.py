"""
GitLab 存储诊断 CLI - 重复包文件清理

按包诊断给出的顺序逐个删除过期的包文件。节省的空间为实际删除文件的大小之和。
"""
import logging
from dataclasses import dataclass, field

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import human_bytes
from storage_doctor.diagnosis.package_analysis import PackageAnalysisReport
from storage_doctor.jobs.base import PendingJob, ProgressCallback, RemedyJob
from storage_doctor.jobs.remedy import DEFAULT_MAX_ATTEMPTS, delete_with_retry, run_deletions
from storage_doctor.models import FileFromPackage, Reportable, ReportStatus

logger = logging.getLogger(__name__)


@dataclass
class PackageCleanReport(Reportable):
    report_status: list[ReportStatus]
    saved_bytes: int = 0
    deleted_files: list[FileFromPackage] = field(default_factory=list)

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class PackageCleanJob(RemedyJob[PackageCleanReport]):
    def __init__(self, package_report: PackageAnalysisReport) -> None:
        self.package_report = package_report
        self.ctx = package_report.ctx

    def remedy(self) -> PendingJob[PackageCleanReport]:
        files = list(self.package_report.obsolete_files)
        return PendingJob(
            "Deleting duplicated package files",
            lambda progress: self._run(files, progress),
            total=len(files),
        )

    def _delete(self, item: FileFromPackage) -> None:
        delete_with_retry(
            self.ctx.client,
            endpoints.package_file(self.ctx.project_path, item.package_id, item.file.id),
            item.file.id,
            "package files",
            max_attempts=self.ctx.config.get("remedy.max_attempts", DEFAULT_MAX_ATTEMPTS),
            wait_sec=self.ctx.config.get("remedy.retry_wait_sec", 0.0),
        )

    def _run(self, files: list[FileFromPackage], progress: ProgressCallback | None) -> PackageCleanReport:
        outcome = run_deletions(files, self._delete, progress)
        saved_bytes = sum(f.file.size for f in outcome.deleted)

        report_status = [
            ReportStatus.ok(
                f"Deleted {len(outcome.deleted)} package files, {human_bytes(saved_bytes)} saved."
            )
        ]
        if outcome.error is not None:
            report_status.append(
                ReportStatus.error(
                    f"Package file {outcome.error.item_id} - Error : {outcome.error.message}"
                )
            )
        return PackageCleanReport(
            report_status=report_status,
            saved_bytes=saved_bytes,
            deleted_files=outcome.deleted,
        )
