"""
评分模块测试
"""
import pytest


class TestBucket:
    """测试阈值分档"""

    @pytest.mark.parametrize("value,expected", [
        (0, "XS"),
        (99, "XS"),
        (100, "S"),
        (499, "S"),
        (10_000, "XL"),
    ])
    def test_strictly_below(self, value, expected):
        """严格小于阈值落入该档，否则继续向后"""
        from storage_doctor.scoring import IMPACT_TIERS, bucket

        thresholds = {"XS": 100, "S": 500, "M": 1000, "L": 5000}

        assert bucket(value, thresholds, IMPACT_TIERS) == expected


class TestComputeScore:
    """测试评分计算"""

    def test_zero_storage(self, config):
        """存储为 0 时 rating 为 N/A，不抛出除零错误"""
        from storage_doctor.models import Statistics, StatusKind
        from storage_doctor.scoring import compute_score

        score = compute_score(Statistics(), config)

        assert score.impact == "XS"
        assert score.rating is None
        assert score.report()[1].kind == StatusKind.NA

    def test_repository_weighted(self, config):
        """impact 中 Git 仓库大小按 9 倍计权"""
        from storage_doctor.models import Statistics
        from storage_doctor.scoring import compute_score, impact_value

        stats = Statistics(repository_size=100_000_000, storage_size=100_000_000)

        assert impact_value(stats) == 1_000_000_000
        assert compute_score(stats, config).impact == "M"

    def test_rating_clean_project(self, config):
        from storage_doctor.models import Statistics, StatusKind
        from storage_doctor.scoring import compute_score

        stats = Statistics(repository_size=10_000_000, storage_size=200_000_000)
        score = compute_score(stats, config)

        assert score.rating == "A"
        assert score.rating_percent == 0
        assert score.report()[1].kind == StatusKind.OK

    def test_rating_savable_bytes(self, config):
        """可回收的产物和包文件计入 rating"""
        from storage_doctor.models import Statistics, StatusKind
        from storage_doctor.scoring import compute_score

        # 加权总量 = 9 * 0 + 1000 = 1000
        stats = Statistics(repository_size=0, storage_size=1000)
        score = compute_score(stats, config, savable_job_bytes=200, savable_package_bytes=150)

        assert score.rating_percent == pytest.approx(35.0)
        assert score.rating == "D"
        assert score.report()[1].kind == StatusKind.WARNING

    def test_rating_repository_over_limit(self):
        """仓库超出上限的部分按 9 倍计权"""
        from storage_doctor.config import Config
        from storage_doctor.models import Statistics
        from storage_doctor.scoring import rating_value

        stats = Statistics(repository_size=200, storage_size=200)
        # (9 * (200 - 100)) / (9 * 200 + 200) = 900 / 2000
        assert rating_value(stats, 100, 0, 0) == pytest.approx(45.0)
        assert Config().get("limits.repository") == 100_000_000
