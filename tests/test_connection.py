"""
连接引导测试
"""
import httpx
import pytest


class TestParseRemoteUrl:
    """测试远程地址解析"""

    @pytest.mark.parametrize("url,host,path", [
        ("https://gitlab.com/group/project.git", "gitlab.com", "group/project"),
        ("https://gitlab.com/group/sub/project", "gitlab.com", "group/sub/project"),
        ("https://gitlab.example.com:8443/group/project", "gitlab.example.com:8443", "group/project"),
        ("https://gitlab.com/group/project/-/pipelines", "gitlab.com", "group/project"),
        ("ssh://git@gitlab.com:2222/group/project.git", "gitlab.com", "group/project"),
        ("git@gitlab.com:group/project.git", "gitlab.com", "group/project"),
    ])
    def test_supported_formats(self, url, host, path):
        from storage_doctor.diagnosis.connection import RemoteLocation, parse_remote_url

        assert parse_remote_url(url) == RemoteLocation(host=host, path=path)

    @pytest.mark.parametrize("url", [
        "not a url",
        "https://gitlab.com/project-only",
        "/local/path/repo.git",
    ])
    def test_invalid(self, url):
        from storage_doctor.diagnosis.connection import parse_remote_url

        assert parse_remote_url(url) is None


class TestFindGitlabRemote:
    """测试远程地址选择"""

    def test_first_parsable(self):
        from storage_doctor.diagnosis.connection import find_gitlab_remote

        location = find_gitlab_remote(["/mirror/repo.git", "git@gitlab.com:a/b.git"])

        assert location.path == "a/b"

    def test_host_filter(self):
        from storage_doctor.diagnosis.connection import find_gitlab_remote

        urls = ["git@github.com:a/b.git", "git@gitlab.example.com:c/d.git"]

        assert find_gitlab_remote(urls, "gitlab.example.com").path == "c/d"
        assert find_gitlab_remote(urls, "other.host") is None


class TestGitlabConnection:
    """测试连接流程"""

    def test_missing_token(self, config):
        from storage_doctor.diagnosis.connection import GitlabConnection
        from storage_doctor.models import StatusKind

        connection = GitlabConnection.from_url("https://gitlab.com/group/project", config)

        assert connection.data is None
        assert connection.status.kind == StatusKind.ERROR
        assert "GL_TOKEN" in connection.status.message

    def test_invalid_url(self, config):
        from storage_doctor.diagnosis.connection import GitlabConnection

        connection = GitlabConnection.from_url("nonsense", config)

        assert connection.data is None
        assert "Invalid Gitlab project URL" in connection.status.message

    def test_connect_reads_project(self):
        from storage_doctor.config import Config
        from storage_doctor.diagnosis.connection import GitlabConnection
        from storage_doctor.models import StatusKind

        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path.decode()
            return httpx.Response(200, json={
                "id": 42,
                "path_with_namespace": "group/project",
                "statistics": {"storage_size": 1234},
            })

        config = Config({"gitlab": {"token": "t"}})
        connection = GitlabConnection.from_url(
            "https://gitlab.com/group/project", config, transport=httpx.MockTransport(handler)
        )

        assert connection.status.kind == StatusKind.OK
        assert connection.status.message == "Gitlab repository : gitlab.com/group/project"
        assert connection.data.project.id == 42
        assert connection.data.statistics.storage_size == 1234
        assert seen["path"].startswith("/api/v4/projects/group%2Fproject")
        connection.data.client.close()

    def test_project_not_found(self):
        from storage_doctor.config import Config
        from storage_doctor.diagnosis.connection import GitlabConnection
        from storage_doctor.models import StatusKind

        def handler(request):
            return httpx.Response(404, json={"message": "404 Project Not Found"})

        config = Config({"gitlab": {"token": "t"}})
        connection = GitlabConnection.from_url(
            "https://gitlab.com/group/project", config, transport=httpx.MockTransport(handler)
        )

        assert connection.data is None
        assert connection.status.kind == StatusKind.ERROR
        assert "404 Project Not Found" in connection.status.message

    def test_not_a_git_repository(self, tmp_path, config):
        from storage_doctor.diagnosis.connection import GitlabConnection

        connection = GitlabConnection.from_path(tmp_path, config)

        assert connection.data is None
