"""
GitLab 存储诊断 CLI - 评分模块

在所有诊断结束后给出两个粗粒度评分：
- impact（XS..XL）：存储占用规模，Git 仓库大小按 9 倍计权
- rating（A..E）：当前可回收字节占加权存储总量的百分比
  （仓库超出上限的部分按 9 倍计权，加上可回收的 CI 产物和重复包文件）

阈值表升序排列：数值严格小于某阈值即落入该档，否则落入最后一档。
"""
import logging
from dataclasses import dataclass
from typing import Any

from storage_doctor.config import Config
from storage_doctor.models import Reportable, ReportStatus, Statistics

logger = logging.getLogger(__name__)

REPOSITORY_WEIGHT = 9

IMPACT_TIERS = ["XS", "S", "M", "L", "XL"]
RATING_TIERS = ["A", "B", "C", "D", "E"]


def bucket(value: float, thresholds: dict[str, Any], tiers: list[str]) -> str:
    """
    按阈值表分档

    Args:
        value: 待分档的数值
        thresholds: 档位 -> 阈值（升序）
        tiers: 全部档位，最后一档没有阈值
    """
    for tier in tiers[:-1]:
        limit = thresholds.get(tier)
        if limit is not None and value < limit:
            return tier
    return tiers[-1]


def weighted_total(stats: Statistics) -> int:
    return REPOSITORY_WEIGHT * stats.repository_size + stats.storage_size


def impact_value(stats: Statistics) -> int:
    return weighted_total(stats)


def rating_value(
    stats: Statistics,
    repository_limit: int,
    savable_job_bytes: int,
    savable_package_bytes: int,
) -> float | None:
    """可回收百分比；加权总量为 0 时无法计算，返回 None"""
    total = weighted_total(stats)
    if total <= 0:
        return None
    repo_over_limit = max(0, stats.repository_size - repository_limit)
    savable = REPOSITORY_WEIGHT * repo_over_limit + savable_job_bytes + savable_package_bytes
    return 100 * savable / total


@dataclass
class Score(Reportable):
    impact: str
    rating: str | None
    rating_percent: float | None = None

    def report(self) -> list[ReportStatus]:
        impact = ReportStatus.na(f"Storage impact : {self.impact}")
        if self.rating is None:
            return [impact, ReportStatus.na("Storage rating : N/A (no storage recorded)")]
        msg = f"Storage rating : {self.rating} ({self.rating_percent:.1f} % reclaimable)"
        if self.rating in ("A", "B"):
            rating = ReportStatus.ok(msg)
        else:
            rating = ReportStatus.warning(msg)
        return [impact, rating]


def compute_score(
    stats: Statistics,
    config: Config,
    savable_job_bytes: int = 0,
    savable_package_bytes: int = 0,
) -> Score:
    impact = bucket(
        impact_value(stats),
        config.get("scoring.impact_thresholds", {}),
        IMPACT_TIERS,
    )
    percent_value = rating_value(
        stats,
        config.get("limits.repository", 100_000_000),
        savable_job_bytes,
        savable_package_bytes,
    )
    if percent_value is None:
        logger.info("项目存储为 0，跳过 rating 计算")
        return Score(impact=impact, rating=None)
    rating = bucket(percent_value, config.get("scoring.rating_thresholds", {}), RATING_TIERS)
    return Score(impact=impact, rating=rating, rating_percent=percent_value)
