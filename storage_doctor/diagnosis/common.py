"""
GitLab 存储诊断 CLI - 诊断公共函数
"""
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from storage_doctor.api.client import GitlabClient, GitlabError
from storage_doctor.jobs.base import DiagnosticError
from storage_doctor.models import ReportStatus

ModelT = TypeVar("ModelT", bound=BaseModel)


def fetch_all(
    client: GitlabClient,
    path: str,
    model: type[ModelT],
    params: dict[str, Any] | None = None,
) -> list[ModelT]:
    """
    分页查询并反序列化

    Raises:
        DiagnosticError: 远端错误，或响应内容不符合模型
    """
    try:
        return [model.model_validate(item) for item in client.list(path, params)]
    except (GitlabError, ValidationError) as e:
        raise DiagnosticError(str(e)) from e


def fetch_one(
    client: GitlabClient,
    path: str,
    model: type[ModelT],
    params: dict[str, Any] | None = None,
) -> ModelT:
    """查询单个资源并反序列化，错误同 fetch_all"""
    try:
        return model.model_validate(client.get(path, params))
    except (GitlabError, ValidationError) as e:
        raise DiagnosticError(str(e)) from e


def human_bytes(size: int | float) -> str:
    """将字节数格式化为可读字符串"""
    val = float(max(size, 0))
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if val < 1000.0 or unit == "TB":
            if unit == "B":
                return f"{int(val)} {unit}"
            return f"{val:.1f} {unit}"
        val /= 1000.0
    return f"{size} B"


def percent(part: int, total: int) -> str:
    """占比（整数百分比），总量为 0 时返回 n/a"""
    if total <= 0:
        return "n/a"
    return f"{100 * part // total} %"


def cutoff_date(days: int, now: datetime | None = None) -> datetime:
    """返回 now - days 天的时间点（带时区）"""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days)


def error_status(e: Exception) -> ReportStatus:
    return ReportStatus.error(f"Error : {e}")
