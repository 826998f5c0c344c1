"""
Unit tests for raw video normalization
"""

import pytest

from core.exceptions import ValidationError
from ingestion.transformers.video_normalizer import VideoNormalizer
from schemas.video import VideoRecord
from tests.conftest import make_raw_video


class TestVideoNormalizer:

    def setup_method(self):
        self.normalizer = VideoNormalizer()

    def test_maps_provider_fields(self):
        record = self.normalizer.normalize(make_raw_video("v1"))

        assert record.id == "v1"
        assert record.text.startswith("Learn this dance")
        assert record.create_time == 1700000000
        assert record.author_meta.nickname == "Creator"
        assert record.author_meta.verified is True
        assert record.music.id == "music_1"
        assert record.music.title == "Original sound"
        assert record.video_meta.duration == 30
        assert record.hashtags == ["dance", "fyp", "viral", "trend"]
        assert record.stats.play_count == 50000
        assert record.stats.digg_count == 5000
        assert record.web_video_url.endswith("/video/v1")
        assert record.raw["id"] == "v1"

    def test_numeric_strings_and_alternate_keys(self):
        raw = make_raw_video("v2")
        raw.pop("text")
        raw.pop("musicMeta")
        raw["desc"] = "  Quick outfit check  "
        raw["music"] = {"id": 42, "title": "Remix", "authorName": "dj"}
        raw["stats"] = {"playCount": "12000.0", "diggCount": "900", "commentCount": None}
        raw["hashtags"] = "#ootd, style"

        record = self.normalizer.normalize(raw)

        assert record.text == "Quick outfit check"
        assert record.music.id == "42"
        assert record.music.author_name == "dj"
        assert record.stats.play_count == 12000
        assert record.stats.comment_count == 0
        assert record.hashtags == ["ootd", "style"]

    def test_missing_sections_stay_empty(self):
        record = self.normalizer.normalize({"id": 99})

        assert record.id == "99"
        assert record.text == ""
        assert record.video_meta is None
        assert record.stats is None
        assert record.music is None

    def test_passes_through_normalized_records(self):
        record = VideoRecord(id="v3")
        assert self.normalizer.normalize(record) is record

    def test_rejects_non_mapping(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(["not", "a", "record"])

    def test_rejects_invalid_counters(self):
        raw = make_raw_video("v4")
        raw["stats"]["playCount"] = -10

        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize(raw)

        assert exc_info.value.context["item_id"] == "v4"

    def test_batch_drops_invalid_records(self):
        bad = make_raw_video("bad")
        bad["stats"]["shareCount"] = -1

        records = self.normalizer.normalize_batch([make_raw_video("ok"), bad, "junk"])

        assert [r.id for r in records] == ["ok"]

    def test_out_of_range_counters_fall_back_to_zero(self):
        raw = make_raw_video("v5")
        raw["stats"] = {"playCount": "inf", "diggCount": "1e400", "commentCount": 10 ** 400, "shareCount": "7"}

        record = self.normalizer.normalize(raw)

        assert record.stats.play_count == 0
        assert record.stats.digg_count == 0
        assert record.stats.comment_count == 0
        assert record.stats.share_count == 7
