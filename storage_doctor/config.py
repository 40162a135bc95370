"""
GitLab 存储诊断 CLI - 配置加载模块

负责加载和管理配置文件。配置在进程启动时加载一次，
随 ProjectContext 向下传递给各个诊断/清理任务。
"""
import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 默认配置文件路径
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"
# 用户配置路径（可通过环境变量覆盖）
USER_CONFIG_PATH = Path(
    os.getenv("STORAGE_DOCTOR_CONFIG", Path.home() / ".storage_doctor" / "config.yaml")
)


class Config:
    """配置管理类"""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = self._get_default_config()
        if data:
            self._merge_config(self._data, data)

    def load(self, config_path: Path | None = None) -> None:
        """
        加载配置文件

        优先加载指定的 config_path。
        如果未指定，则加载默认配置，并尝试合并用户配置。
        最后应用环境变量（GL_TOKEN / GITLAB_HOST）。
        """
        # 1. 内置默认配置
        self._data = self._get_default_config()

        # 2. 仓库自带的默认配置文件
        if DEFAULT_CONFIG_PATH.exists():
            with open(DEFAULT_CONFIG_PATH, encoding="utf-8") as f:
                default_file_data = yaml.safe_load(f) or {}
                self._merge_config(self._data, default_file_data)

        # 3. 指定的配置文件
        if config_path:
            if config_path.exists():
                with open(config_path, encoding="utf-8") as f:
                    custom_data = yaml.safe_load(f) or {}
                    self._merge_config(self._data, custom_data)
                logger.info(f"已加载自定义配置文件: {config_path}")
            else:
                logger.warning(f"指定配置文件不存在: {config_path}")

        # 4. 未指定时尝试用户配置 (~/.storage_doctor/config.yaml)
        elif USER_CONFIG_PATH.exists():
            try:
                with open(USER_CONFIG_PATH, encoding="utf-8") as f:
                    user_data = yaml.safe_load(f) or {}
                    self._merge_config(self._data, user_data)
                logger.info(f"已加载用户配置文件: {USER_CONFIG_PATH}")
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"加载用户配置失败: {e}")

        # 5. 环境变量优先级最高
        token = os.getenv("GL_TOKEN")
        if token:
            self._data["gitlab"]["token"] = token
        host = os.getenv("GITLAB_HOST")
        if host:
            self._data["gitlab"]["host"] = host

    def _merge_config(self, base: dict, update: dict) -> None:
        """递归合并配置字典"""
        for k, v in update.items():
            if k in base and isinstance(base[k], dict) and isinstance(v, dict):
                self._merge_config(base[k], v)
            else:
                base[k] = v

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值，支持点号分隔的嵌套键

        Args:
            key: 配置键，支持 "a.b.c" 格式
            default: 默认值

        Returns:
            配置值或默认值
        """
        keys = key.split(".")
        value = self._data

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def as_dict(self) -> dict[str, Any]:
        """返回配置的深拷贝"""
        return copy.deepcopy(self._data)

    def _get_default_config(self) -> dict[str, Any]:
        """返回内置默认配置"""
        return {
            "gitlab": {
                "host": None,
                "token": None,
                "timeout_sec": 30,
                "per_page": 100,
            },
            "analysis": {
                "days": 30,
            },
            "limits": {
                "storage": 2_000_000_000,
                "repository": 100_000_000,
                "job_artifacts": 500_000_000,
                "packages": 1_000_000_000,
                "container_registry": 5_000_000_000,
            },
            "remedy": {
                "max_attempts": 3,
                "retry_wait_sec": 0.5,
            },
            "scoring": {
                # 按字节计，升序
                "impact_thresholds": {
                    "XS": 100_000_000,
                    "S": 500_000_000,
                    "M": 2_000_000_000,
                    "L": 10_000_000_000,
                },
                # 按可回收百分比计，升序
                "rating_thresholds": {
                    "A": 5,
                    "B": 15,
                    "C": 30,
                    "D": 50,
                },
            },
        }


def load_config(config_path: Path | None = None) -> Config:
    """
    加载配置并返回新的配置实例

    Args:
        config_path: 配置文件路径

    Returns:
        配置实例
    """
    config = Config()
    config.load(config_path)
    return config
