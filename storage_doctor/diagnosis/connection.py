"""
GitLab 存储诊断 CLI - 连接引导

根据项目 URL 或本地 Git 工作目录确定目标项目，读取访问令牌，
查询项目信息（含存储统计）并构造 ProjectContext。

连接失败是唯一会让进程以非零状态退出的错误。
"""
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx

from storage_doctor.api import endpoints
from storage_doctor.api.client import GitlabClient
from storage_doctor.config import Config
from storage_doctor.diagnosis.common import fetch_one
from storage_doctor.jobs.base import DiagnosticError, GitlabConnectionError
from storage_doctor.models import Project, ProjectContext, Reportable, ReportStatus

logger = logging.getLogger(__name__)

# git@host:group/project.git
RE_SCP_REMOTE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?!//)(?P<path>.+)$")


@dataclass(frozen=True)
class RemoteLocation:
    host: str
    path: str


def parse_remote_url(url: str) -> RemoteLocation | None:
    """
    解析 Git 远程地址或项目网页地址

    支持：
    - https://host/group/project(.git)
    - ssh://git@host:2222/group/project.git
    - git@host:group/project.git
    """
    url = url.strip()
    if "://" in url:
        parsed = urlparse(url)
        host = parsed.hostname
        path = parsed.path
        # 网页地址可能带有 /-/ 之后的子页面
        path = path.split("/-/", 1)[0]
        if parsed.scheme in ("http", "https") and parsed.port:
            host = f"{host}:{parsed.port}"
    else:
        match = RE_SCP_REMOTE.match(url)
        if not match:
            return None
        host, path = match.group("host"), match.group("path")

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    if not host or "/" not in path:
        return None
    return RemoteLocation(host=host, path=path)


def git_remote_urls(path: Path) -> list[str]:
    """读取工作目录的远程地址，origin 排在最前"""
    try:
        result = subprocess.run(
            ["git", "-C", str(path), "remote", "-v"],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise GitlabConnectionError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise GitlabConnectionError(f"{path} is not a Git repository") from e

    remotes: dict[str, str] = {}
    for line in result.stdout.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] not in remotes:
            remotes[parts[0]] = parts[1]
    ordered = sorted(remotes.items(), key=lambda kv: kv[0] != "origin")
    return [url for _, url in ordered]


def find_gitlab_remote(urls: list[str], host: str | None = None) -> RemoteLocation | None:
    """返回第一个可解析的远程地址；指定 host 时只接受该主机"""
    for url in urls:
        location = parse_remote_url(url)
        if location is None:
            continue
        if host is None or location.host == host:
            return location
    return None


class GitlabConnection(Reportable):
    """
    连接引导结果

    Attributes:
        data: 成功时的项目上下文，失败时为 None
        status: 连接状态（OK 或 ERROR）
    """

    def __init__(self, data: ProjectContext | None, status: ReportStatus) -> None:
        self.data = data
        self.status = status

    def report(self) -> list[ReportStatus]:
        return [self.status]

    @classmethod
    def from_url(
        cls,
        url: str,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> "GitlabConnection":
        location = parse_remote_url(url)
        if location is None:
            return cls.failed(GitlabConnectionError(f"Invalid Gitlab project URL : {url}"))
        return cls.connect(location, config, transport)

    @classmethod
    def from_path(
        cls,
        path: Path,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> "GitlabConnection":
        try:
            urls = git_remote_urls(path)
        except GitlabConnectionError as e:
            return cls.failed(e)
        location = find_gitlab_remote(urls, config.get("gitlab.host"))
        if location is None:
            return cls.failed(GitlabConnectionError("This dir does not contain a Gitlab remote"))
        return cls.connect(location, config, transport)

    @classmethod
    def connect(
        cls,
        location: RemoteLocation,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> "GitlabConnection":
        try:
            ctx = _open_project(location, config, transport)
        except GitlabConnectionError as e:
            return cls.failed(e)
        logger.info(f"已连接项目 {location.path} (id={ctx.project.id})")
        return cls(ctx, ReportStatus.ok(f"Gitlab repository : {location.host}/{location.path}"))

    @classmethod
    def failed(cls, error: Exception) -> "GitlabConnection":
        logger.error(f"连接失败: {error}")
        return cls(None, ReportStatus.error(str(error)))


def _open_project(
    location: RemoteLocation,
    config: Config,
    transport: httpx.BaseTransport | None,
) -> ProjectContext:
    token = config.get("gitlab.token")
    if not token:
        raise GitlabConnectionError(
            "GL_TOKEN environment variable must contain a valid Gitlab private token"
        )
    client = GitlabClient(
        config.get("gitlab.host") or location.host,
        token,
        timeout=config.get("gitlab.timeout_sec", 30),
        per_page=config.get("gitlab.per_page", 100),
        transport=transport,
    )
    try:
        project = fetch_one(
            client, endpoints.project(location.path), Project, params={"statistics": True}
        )
    except DiagnosticError as e:
        client.close()
        raise GitlabConnectionError(f"Unable to read project {location.path} : {e}") from e
    return ProjectContext(client=client, project=project, config=config)
