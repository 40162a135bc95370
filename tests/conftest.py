"""
GitLab 存储诊断 CLI - pytest 配置
"""
from datetime import datetime, timezone

import pytest


# 所有时间相关测试使用的固定"当前时间"
NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


class FakeGitlabClient:
    """
    内存中的 GitLab 客户端

    按路径预置响应；值为异常实例时抛出该异常。
    delete 的响应按调用顺序依次消费，用于模拟"先失败后成功"。
    """

    def __init__(self):
        self.lists = {}
        self.gets = {}
        self.deletes = {}
        self.graphql_result = None
        self.deleted = []
        self.delete_calls = []
        self.closed = False

    def list(self, path, params=None):
        value = self.lists.get(path, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def get(self, path, params=None):
        value = self.gets[path]
        if isinstance(value, Exception):
            raise value
        return value

    def delete(self, path):
        self.delete_calls.append(path)
        outcomes = self.deletes.get(path)
        if outcomes:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        self.deleted.append(path)

    def graphql(self, query, variables=None):
        if isinstance(self.graphql_result, Exception):
            raise self.graphql_result
        return self.graphql_result

    def close(self):
        self.closed = True


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_client():
    return FakeGitlabClient()


@pytest.fixture
def config():
    """不等待重试的配置"""
    from storage_doctor.config import Config
    return Config({"remedy": {"retry_wait_sec": 0}})


@pytest.fixture
def make_ctx(fake_client, config):
    """构造 ProjectContext 的工厂，可覆盖项目字段和统计数据"""
    from storage_doctor.models import Project, ProjectContext

    def _make(statistics=None, **project_fields):
        fields = {
            "id": 42,
            "name": "demo",
            "path_with_namespace": "group/demo",
            "web_url": "https://gitlab.example.com/group/demo",
            "statistics": statistics or {},
        }
        fields.update(project_fields)
        project = Project.model_validate(fields)
        return ProjectContext(client=fake_client, project=project, config=config)

    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def make_http_ctx(config):
    """构造使用真实 GitlabClient 的 ProjectContext，HTTP 请求交给 handler 处理"""
    import httpx

    from storage_doctor.api.client import GitlabClient
    from storage_doctor.models import Project, ProjectContext

    clients = []

    def _make(handler, statistics=None):
        client = GitlabClient(
            "gitlab.example.com",
            "secret-token",
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        project = Project.model_validate({
            "id": 42,
            "path_with_namespace": "group/demo",
            "web_url": "https://gitlab.example.com/group/demo",
            "statistics": statistics or {},
        })
        return ProjectContext(client=client, project=project, config=config)

    yield _make
    for client in clients:
        client.close()
