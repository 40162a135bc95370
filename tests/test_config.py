"""
配置模块测试
"""


class TestConfig:
    """测试配置加载与合并"""

    def test_defaults(self):
        from storage_doctor.config import Config

        config = Config()

        assert config.get("analysis.days") == 30
        assert config.get("limits.storage") == 2_000_000_000
        assert config.get("remedy.max_attempts") == 3
        assert config.get("missing.key", "fallback") == "fallback"

    def test_merge_keeps_siblings(self):
        """嵌套字典递归合并，未覆盖的键保持默认值"""
        from storage_doctor.config import Config

        config = Config({"limits": {"storage": 10}})

        assert config.get("limits.storage") == 10
        assert config.get("limits.repository") == 100_000_000

    def test_load_custom_file(self, tmp_path, monkeypatch):
        from storage_doctor.config import load_config

        monkeypatch.delenv("GL_TOKEN", raising=False)
        monkeypatch.delenv("GITLAB_HOST", raising=False)
        path = tmp_path / "custom.yaml"
        path.write_text("analysis:\n  days: 7\ngitlab:\n  host: gitlab.internal\n", encoding="utf-8")

        config = load_config(path)

        assert config.get("analysis.days") == 7
        assert config.get("gitlab.host") == "gitlab.internal"
        assert config.get("gitlab.per_page") == 100

    def test_missing_custom_file(self, tmp_path, monkeypatch):
        """指定的配置文件不存在时使用默认值"""
        from storage_doctor.config import load_config

        monkeypatch.delenv("GL_TOKEN", raising=False)
        config = load_config(tmp_path / "missing.yaml")

        assert config.get("analysis.days") == 30
        assert config.get("gitlab.token") is None

    def test_env_overrides(self, tmp_path, monkeypatch):
        """环境变量优先级最高"""
        from storage_doctor.config import load_config

        monkeypatch.setenv("GL_TOKEN", "env-token")
        monkeypatch.setenv("GITLAB_HOST", "env.host")
        path = tmp_path / "custom.yaml"
        path.write_text("gitlab:\n  token: file-token\n  host: file.host\n", encoding="utf-8")

        config = load_config(path)

        assert config.get("gitlab.token") == "env-token"
        assert config.get("gitlab.host") == "env.host"

    def test_instances_are_independent(self):
        from storage_doctor.config import Config

        a = Config({"analysis": {"days": 1}})
        b = Config()

        assert a.get("analysis.days") == 1
        assert b.get("analysis.days") == 30
        a.as_dict()["analysis"]["days"] = 99
        assert a.get("analysis.days") == 1
