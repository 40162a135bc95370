"""
GitLab 存储诊断 CLI - 任务抽象

每次调用 diagnose() / remedy() 都会立即启动一个独立的工作线程并返回
PendingJob，调用方自行决定何时阻塞等待结果、以及如何展示进度。

- 诊断任务（ReportJob）只读，不会修改远端状态，错误记录在报告里
- 清理任务（RemedyJob）会修改远端状态，即使中途失败也要如实报告已完成的部分
"""
import logging
import queue
import threading
from abc import ABC, abstractmethod
from concurrent import futures
from concurrent.futures import Future
from typing import Callable, Generic, Iterator, TypeVar

from storage_doctor.models import Reportable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Reportable)

# 进度回调：参数为已结束（删除成功或致命失败）的条目数
ProgressCallback = Callable[[int], None]


class GitlabConnectionError(Exception):
    """无法连接或认证到目标项目，诊断无法开始"""


class DiagnosticError(Exception):
    """单个诊断的查询失败，记录为该诊断报告中的 ERROR"""


class RemedyFatalError(Exception):
    """清理过程中的致命错误，中止剩余批次"""

    def __init__(self, item_id: int, message: str) -> None:
        super().__init__(message)
        self.item_id = item_id
        self.message = message


class RemedyTransientError(Exception):
    """清理过程中的临时错误，重试耗尽后升级为 RemedyFatalError"""


class PendingJob(Generic[T]):
    """
    运行中的任务句柄

    Attributes:
        pending_msg: 等待时展示的说明
        total: 进度总数；为 None 时没有进度通道，调用方应展示不定时长的 spinner
        progress: 进度队列，工作线程写入，调用方读取；结束时写入 None
    """

    def __init__(
        self,
        pending_msg: str,
        work: Callable[[ProgressCallback | None], T],
        total: int | None = None,
    ) -> None:
        self.pending_msg = pending_msg
        self.total = total
        self.progress: queue.Queue[int | None] | None = queue.Queue() if total is not None else None
        self._future: Future[T] = Future()
        self._joined = False
        self._thread = threading.Thread(
            target=self._run,
            args=(work,),
            name=f"job-{pending_msg}",
        )
        self._thread.start()

    def _run(self, work: Callable[[ProgressCallback | None], T]) -> None:
        callback = self.progress.put if self.progress is not None else None
        try:
            self._future.set_result(work(callback))
        except Exception as e:
            logger.error(f"任务异常结束 ({self.pending_msg}): {e}")
            self._future.set_exception(e)
        finally:
            if self.progress is not None:
                self.progress.put(None)

    @property
    def has_progress(self) -> bool:
        return self.progress is not None and self.total is not None

    def iter_progress(self) -> Iterator[int]:
        """逐个产出进度值，直到工作线程结束"""
        if self.progress is None:
            return
        while True:
            received = self.progress.get()
            if received is None:
                return
            yield received

    def wait(self, timeout: float | None = None) -> bool:
        """等待任务结束但不取结果，返回任务是否已结束"""
        done, _ = futures.wait([self._future], timeout=timeout)
        return bool(done)

    def join(self, timeout: float | None = None) -> T:
        """
        阻塞等待任务结果

        只能调用一次；工作线程中未处理的异常会在这里重新抛出。
        """
        if self._joined:
            raise RuntimeError("PendingJob 已经被 join 过")
        result = self._future.result(timeout)
        self._joined = True
        return result


class ReportJob(ABC, Generic[T]):
    """只读诊断任务"""

    @abstractmethod
    def diagnose(self) -> PendingJob[T]:
        pass


class RemedyJob(ABC, Generic[T]):
    """修改远端状态的清理任务"""

    @abstractmethod
    def remedy(self) -> PendingJob[T]:
        pass
