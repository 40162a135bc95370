"""
GitLab 存储诊断 CLI - 包仓库诊断

列出项目的所有包及其文件，找出被更新版本取代的重复文件。

重复文件判定（detect_obsolete_files）：
- maven 包中以包名开头的文件：去掉中间的版本/时间戳部分，
  用 "包名 + 扩展名后缀" 作为通用键，例如
  my-app-1.5-20181107.152550-1.jar -> my-app.jar
- 其他文件：直接用完整文件名作为键
文件按创建时间从新到旧排列，每个键第一次出现的文件保留，之后的都视为过期。
"""
import logging
import re
from dataclasses import dataclass, field

from storage_doctor.api import endpoints
from storage_doctor.diagnosis.common import error_status, fetch_all, human_bytes
from storage_doctor.jobs.base import DiagnosticError, PendingJob, ReportJob
from storage_doctor.models import (
    FileFromPackage,
    GitlabPackage,
    GitlabPackageFile,
    PackageWithFiles,
    ProjectContext,
    Reportable,
    ReportStatus,
)

logger = logging.getLogger(__name__)

MAVEN_PACKAGE_TYPE = "maven"

# 文件名末尾连续的 ".xxx" 段，例如 ".jar"、".pom.sha1"
RE_EXTENSION = re.compile(r"(\.[a-z]\w+)+$")


def get_extension(file_name: str) -> str:
    match = RE_EXTENSION.search(file_name)
    return match.group(0) if match else ""


def detect_obsolete_files(
    package: GitlabPackage,
    sorted_files: list[GitlabPackageFile],
) -> list[int]:
    """
    找出过期的包文件

    Args:
        package: 文件所属的包
        sorted_files: 按创建时间从新到旧排序的文件（调用方负责排序）

    Returns:
        过期文件在 sorted_files 中的下标（升序）
    """
    short_name = package.name[package.name.rfind("/") + 1:]
    is_maven = package.package_type == MAVEN_PACKAGE_TYPE

    obsolete: list[int] = []
    seen_names: set[str] = set()
    seen_generic: set[str] = set()
    for idx, file in enumerate(sorted_files):
        if is_maven and file.file_name.startswith(short_name):
            key, seen = short_name + get_extension(file.file_name), seen_generic
        else:
            key, seen = file.file_name, seen_names

        if key in seen:
            obsolete.append(idx)
        else:
            seen.add(key)
    return obsolete


@dataclass
class PackageAnalysisReport(Reportable):
    ctx: ProjectContext
    report_status: list[ReportStatus]
    packages: list[PackageWithFiles] = field(default_factory=list)
    obsolete_files: list[FileFromPackage] = field(default_factory=list)
    savable_bytes: int = 0

    @property
    def savable_files(self) -> int:
        return len(self.obsolete_files)

    def report(self) -> list[ReportStatus]:
        return list(self.report_status)


class PackageAnalysisJob(ReportJob[PackageAnalysisReport]):
    def __init__(self, ctx: ProjectContext) -> None:
        self.ctx = ctx

    def diagnose(self) -> PendingJob[PackageAnalysisReport]:
        return PendingJob("Analysis of packages...", lambda _: self._run())

    def _run(self) -> PackageAnalysisReport:
        if not self.ctx.project.packages_enabled:
            return PackageAnalysisReport(
                ctx=self.ctx,
                report_status=[ReportStatus.na("Package registry is disabled on this project")],
            )
        try:
            packages = self._list_packages()
            packages_with_files = [self._with_files(p) for p in packages]
        except DiagnosticError as e:
            logger.error(f"包仓库查询失败: {e}")
            return PackageAnalysisReport(ctx=self.ctx, report_status=[error_status(e)])

        obsolete_files: list[FileFromPackage] = []
        for pkg in packages_with_files:
            for idx in detect_obsolete_files(pkg.package, pkg.sorted_files):
                obsolete_files.append(FileFromPackage(package_id=pkg.package.id, file=pkg.sorted_files[idx]))
        savable_bytes = sum(f.file.size for f in obsolete_files)

        return PackageAnalysisReport(
            ctx=self.ctx,
            report_status=[
                ReportStatus.na(
                    f"{len(packages_with_files)} packages. {len(obsolete_files)} files are "
                    f"duplicated ({human_bytes(savable_bytes)})"
                )
            ],
            packages=packages_with_files,
            obsolete_files=obsolete_files,
            savable_bytes=savable_bytes,
        )

    def _list_packages(self) -> list[GitlabPackage]:
        packages = fetch_all(self.ctx.client, endpoints.packages(self.ctx.project_path), GitlabPackage)
        packages.sort(key=lambda p: p.created_at, reverse=True)
        return packages

    def _with_files(self, package: GitlabPackage) -> PackageWithFiles:
        files = fetch_all(
            self.ctx.client,
            endpoints.package_files(self.ctx.project_path, package.id),
            GitlabPackageFile,
        )
        files.sort(key=lambda f: f.created_at, reverse=True)
        return PackageWithFiles(package=package, sorted_files=files)
