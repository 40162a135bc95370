"""
GitLab 存储诊断 CLI - 删除调用的重试与错误分类

删除调用可能以三种方式失败，按错误内容分类：
1. 服务端结构化错误：权限不足（insufficient_scope）或其他信息，均为致命错误，不重试
2. 传输层错误（连接重置、超时、无法解析的响应）：可重试，最多尝试 max_attempts 次
3. 其他错误（包括未分类的异常）：致命错误，不重试

遇到致命错误时中止剩余批次，已删除的条目全部保留在结果中。
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Sequence, TypeVar

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from storage_doctor.api.client import (
    GitlabApiError,
    GitlabClient,
    GitlabClientError,
    GitlabError,
)
from storage_doctor.jobs.base import ProgressCallback, RemedyFatalError, RemedyTransientError

logger = logging.getLogger(__name__)

# GitLab 在令牌 scope 不足时返回的错误标记
GITLAB_SCOPE_ERROR = "insufficient_scope"

DEFAULT_MAX_ATTEMPTS = 3

ItemT = TypeVar("ItemT")


def delete_with_retry(
    client: GitlabClient,
    path: str,
    item_id: int,
    what: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    wait_sec: float = 0.0,
) -> None:
    """
    删除单个资源，按错误分类决定重试或中止

    Args:
        client: GitLab 客户端
        path: 删除的 API 路径
        item_id: 条目 ID（用于错误信息）
        what: 条目类型描述，例如 "pipelines"
        max_attempts: 传输层错误的最大尝试次数（含第一次）
        wait_sec: 两次尝试之间的等待秒数

    Raises:
        RemedyFatalError: 不可重试的错误，或重试耗尽
    """
    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(wait_sec),
        retry=retry_if_exception_type(RemedyTransientError),
        reraise=True,
    )
    try:
        for attempt in retrying:
            with attempt:
                try:
                    client.delete(path)
                except GitlabClientError as e:
                    logger.warning(
                        f"删除 {path} 失败 (第 {attempt.retry_state.attempt_number} 次): {e}"
                    )
                    raise RemedyTransientError(str(e)) from e
    except GitlabApiError as e:
        if GITLAB_SCOPE_ERROR in e.message:
            raise RemedyFatalError(
                item_id, f"Your token has insufficient privileges to delete {what}"
            ) from e
        raise RemedyFatalError(item_id, e.message) from e
    except RemedyTransientError as e:
        raise RemedyFatalError(item_id, str(e)) from e
    except GitlabError as e:
        raise RemedyFatalError(item_id, str(e)) from e
    except Exception as e:
        logger.exception(f"删除 {path} 时出现未分类的错误")
        raise RemedyFatalError(item_id, f"{type(e).__name__}: {e}") from e


@dataclass
class DeletionOutcome(Generic[ItemT]):
    """批量删除的结果：已删除的条目，以及中止批次的致命错误（如果有）"""
    deleted: list[ItemT] = field(default_factory=list)
    error: RemedyFatalError | None = None


def run_deletions(
    items: Sequence[ItemT],
    delete_one: Callable[[ItemT], None],
    progress_callback: ProgressCallback | None = None,
) -> DeletionOutcome[ItemT]:
    """
    按输入顺序逐个删除

    每个条目结束（删除成功或致命失败）后发送一次进度；
    遇到致命错误立即停止，不再尝试剩余条目。
    """
    outcome: DeletionOutcome[ItemT] = DeletionOutcome()
    for settled, item in enumerate(items, 1):
        try:
            delete_one(item)
        except RemedyFatalError as e:
            logger.error(f"批量删除中止 ({settled}/{len(items)}): {e.message}")
            outcome.error = e
        else:
            outcome.deleted.append(item)
        if progress_callback:
            progress_callback(settled)
        if outcome.error is not None:
            break
    return outcome
