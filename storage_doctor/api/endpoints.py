"""
GitLab API 路径

集中定义诊断与清理用到的 REST 路径（相对 /api/v4/）。
"""
from urllib.parse import quote

from storage_doctor.api.client import encode_project


def project(project_id: int | str) -> str:
    return f"projects/{encode_project(project_id)}"


def jobs(project_id: int | str) -> str:
    return f"{project(project_id)}/jobs"


def pipelines(project_id: int | str) -> str:
    return f"{project(project_id)}/pipelines"


def pipeline(project_id: int | str, pipeline_id: int) -> str:
    return f"{pipelines(project_id)}/{pipeline_id}"


def packages(project_id: int | str) -> str:
    return f"{project(project_id)}/packages"


def package_files(project_id: int | str, package_id: int) -> str:
    return f"{packages(project_id)}/{package_id}/package_files"


def package_file(project_id: int | str, package_id: int, file_id: int) -> str:
    return f"{package_files(project_id, package_id)}/{file_id}"


def registry_repositories(project_id: int | str) -> str:
    return f"{project(project_id)}/registry/repositories"


def registry_tag(project_id: int | str, repository_id: int, tag_name: str) -> str:
    return f"{registry_repositories(project_id)}/{repository_id}/tags/{quote(tag_name, safe='')}"


# 包仓库重复文件保留策略（REST 接口未暴露，需要 GraphQL）
PACKAGE_DUPLICATE_POLICY_QUERY = """
query packageDuplicatePolicy($projectPath: ID!) {
  project(fullPath: $projectPath) {
    packagesCleanupPolicy {
      keepNDuplicatedPackageFiles
    }
  }
}
"""
