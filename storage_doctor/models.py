"""
GitLab 存储诊断 CLI - 数据模型定义

定义统一的数据结构，用于在各模块间传递数据：
- 报告模型（ReportStatus / Report / Reportable）
- GitLab API 返回的实体（通过 pydantic 反序列化）
- 项目上下文 ProjectContext
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from storage_doctor.api.client import GitlabClient
    from storage_doctor.config import Config


class StatusKind(str, Enum):
    """报告状态类型"""
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    NA = "na"


@dataclass(frozen=True)
class ReportStatus:
    """带说明信息的状态值"""
    kind: StatusKind
    message: str

    @classmethod
    def ok(cls, message: str) -> "ReportStatus":
        return cls(StatusKind.OK, message)

    @classmethod
    def warning(cls, message: str) -> "ReportStatus":
        return cls(StatusKind.WARNING, message)

    @classmethod
    def error(cls, message: str) -> "ReportStatus":
        return cls(StatusKind.ERROR, message)

    @classmethod
    def na(cls, message: str) -> "ReportStatus":
        return cls(StatusKind.NA, message)

    @property
    def is_ok(self) -> bool:
        return self.kind == StatusKind.OK

    def to_report(self) -> "Report":
        return Report(global_status=self)

    def to_dict(self) -> dict[str, str]:
        return {"status": self.kind.value, "message": self.message}


def warning_if(condition: bool, message: str) -> ReportStatus:
    """条件成立时返回 WARNING，否则返回 OK"""
    if condition:
        return ReportStatus.warning(message)
    return ReportStatus.ok(message)


@dataclass
class Report:
    """
    报告树节点

    仅用于展示与导出，下游逻辑不会遍历它做决策。
    """
    global_status: ReportStatus
    details: list["Report"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式（用于 JSON 输出）"""
        return {
            **self.global_status.to_dict(),
            "details": [d.to_dict() for d in self.details],
        }


class Reportable(ABC):
    """
    所有任务结果都具备的能力：给出一个扁平的状态列表

    列表不会为空；任务主动短路（例如项目未启用 CI）时只包含一个 NA。
    """

    @abstractmethod
    def report(self) -> list[ReportStatus]:
        pass

    def to_report(self) -> Report:
        """第一条状态作为节点，其余作为子节点"""
        statuses = self.report()
        head, rest = statuses[0], statuses[1:]
        return Report(global_status=head, details=[s.to_report() for s in rest])


# ---------------------------------------------------------------------------
# GitLab API 实体
# ---------------------------------------------------------------------------

class Statistics(BaseModel):
    """项目存储统计（字节）"""
    model_config = ConfigDict(frozen=True)

    commit_count: int = 0
    storage_size: int = 0
    repository_size: int = 0
    job_artifacts_size: int = 0
    packages_size: int = 0
    container_registry_size: int = 0


class ContainerExpirationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False


class Project(BaseModel):
    """GitLab 项目"""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    path_with_namespace: str = ""
    web_url: str = ""
    jobs_enabled: bool = True
    packages_enabled: bool = True
    container_registry_enabled: bool = True
    container_expiration_policy: ContainerExpirationPolicy | None = None
    statistics: Statistics = Statistics()


class GitlabPipeline(BaseModel):
    id: int
    created_at: datetime


class Artifact(BaseModel):
    size: int = 0


class GitlabJob(BaseModel):
    id: int = 0
    created_at: datetime
    artifacts: list[Artifact] = []

    @property
    def artifacts_size(self) -> int:
        return sum(a.size for a in self.artifacts)


class GitlabPackage(BaseModel):
    id: int
    name: str
    package_type: str = ""
    created_at: datetime


class GitlabPackageFile(BaseModel):
    id: int
    created_at: datetime
    file_name: str
    size: int = 0


class GitlabContainerTagSummary(BaseModel):
    name: str


class GitlabRawContainerRepository(BaseModel):
    """带标签名列表的镜像仓库（tags=true 查询结果）"""
    id: int
    created_at: datetime
    tags: list[GitlabContainerTagSummary] = []


class GitlabContainerTag(BaseModel):
    name: str
    created_at: datetime
    total_size: int = 0


class GitlabContainerRepository(BaseModel):
    """标签详情已补全的镜像仓库"""
    id: int
    created_at: datetime
    tags: list[GitlabContainerTag] = []


@dataclass
class PackageWithFiles:
    """包及其文件（按创建时间从新到旧排序）"""
    package: GitlabPackage
    sorted_files: list[GitlabPackageFile] = field(default_factory=list)


@dataclass
class FileFromPackage:
    """待删除的包文件，附带所属包 ID"""
    package_id: int
    file: GitlabPackageFile


# ---------------------------------------------------------------------------
# 项目上下文
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectContext:
    """
    项目上下文

    构造后不可变，所有任务共享（只读）。
    """
    client: "GitlabClient"
    project: Project
    config: "Config"

    @property
    def statistics(self) -> Statistics:
        return self.project.statistics

    @property
    def project_path(self) -> str:
        """用于拼接 API 路径的项目标识"""
        return str(self.project.id)
