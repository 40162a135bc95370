"""
GitLab 存储诊断 CLI - GitLab REST/GraphQL 客户端

基于 httpx 的最小客户端，只提供诊断与清理需要的几种调用：
- get: 单个资源查询
- list: 分页列表查询（跟随 X-Next-Page）
- delete: 删除资源（忽略响应体）
- graphql: GraphQL 查询

错误按照响应内容分类，而不是只看 HTTP 状态码：
- GitlabApiError: 服务端返回了结构化的错误信息（message / error 字段）
- GitlabClientError: 传输层错误、超时、无法解析的响应、无结构的 5xx
- GitlabHttpError: 其他 HTTP 错误
"""
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class GitlabError(Exception):
    """GitLab 调用错误基类"""


class GitlabApiError(GitlabError):
    """服务端返回的结构化错误"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GitlabClientError(GitlabError):
    """传输层 / 客户端错误，可重试"""


class GitlabHttpError(GitlabError):
    """无结构信息的 HTTP 错误"""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {body[:200]}" if body else f"HTTP {status_code}")
        self.status_code = status_code


def encode_project(project: int | str) -> str:
    """项目 ID 原样返回，项目路径做 URL 编码（group/name -> group%2Fname）"""
    if isinstance(project, int):
        return str(project)
    return quote(project, safe="")


def _error_message(payload: Any) -> str | None:
    """从错误响应体中提取结构化信息"""
    if not isinstance(payload, dict):
        return None
    for key in ("message", "error"):
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)
    return None


class GitlabClient:
    """
    GitLab API 客户端

    httpx.Client 是线程安全的，同一个实例可以被多个任务线程共享。
    """

    def __init__(
        self,
        host: str,
        token: str,
        timeout: float = 30,
        per_page: int = 100,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.host = host
        self.per_page = per_page
        base_url = host if host.startswith(("http://", "https://")) else f"https://{host}"
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=f"{self.base_url}/api/v4/",
            headers={"PRIVATE-TOKEN": token},
            timeout=timeout,
            transport=transport,
        )
        self._graphql_url = f"{self.base_url}/api/graphql"

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GitlabClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = self._http.request(method, url, params=params, json=json_body)
        except httpx.RequestError as e:
            # 传输层错误以及无法解码的响应体（DecodingError 等）
            raise GitlabClientError(f"{type(e).__name__}: {e}") from e

        if response.is_success:
            return response

        try:
            payload = response.json()
        except ValueError:
            payload = None

        message = _error_message(payload)
        if message is not None:
            raise GitlabApiError(message, response.status_code)
        if response.status_code >= 500:
            raise GitlabClientError(f"HTTP {response.status_code}: {response.text[:200]}")
        raise GitlabHttpError(response.status_code, response.text)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise GitlabClientError(f"无法解析的响应: {e}") from e

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """查询单个资源"""
        return self._decode(self._request("GET", path, params=params))

    def list(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """
        分页查询全部结果

        Args:
            path: API 路径（相对 /api/v4/）
            params: 查询参数

        Returns:
            所有分页结果合并后的列表
        """
        items: list[Any] = []
        page: str | None = "1"
        while page:
            query = dict(params or {})
            query.update({"per_page": self.per_page, "page": page})
            response = self._request("GET", path, params=query)
            data = self._decode(response)
            if not isinstance(data, list):
                raise GitlabClientError(f"{path} 返回的不是列表")
            items.extend(data)
            page = response.headers.get("X-Next-Page") or None
        logger.info(f"GET {path}: {len(items)} 条结果")
        return items

    def delete(self, path: str) -> None:
        """删除资源，忽略响应体"""
        self._request("DELETE", path)

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """执行 GraphQL 查询，返回 data 字段"""
        response = self._request(
            "POST",
            self._graphql_url,
            json_body={"query": query, "variables": variables or {}},
        )
        payload = self._decode(response)
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            raise GitlabApiError("; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors
            ))
        if not isinstance(payload, dict) or payload.get("data") is None:
            raise GitlabClientError("GraphQL 响应缺少 data 字段")
        return payload["data"]
