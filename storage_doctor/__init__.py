"""
GitLab 存储诊断 CLI

审计 GitLab 项目的存储占用（Git 仓库、CI 产物、包仓库、容器镜像），
并可选地清理过期流水线与重复的包文件。
"""
__version__ = "0.4.0"
