"""
Unit tests for template analysis and categorization
"""

import pytest

from core.exceptions import TransformationError
from ingestion.transformers.content_analyzer import ContentAnalyzer
from schemas.video import AuthorMeta, VideoMeta, VideoRecord, VideoStats


def _video(duration=30, text="Learn this dance in 30 seconds. Follow the steps slowly and repeat",
           hashtags=("dance", "fyp", "viral", "trend"), nickname="Creator", name="creator"):
    return VideoRecord(
        id="7300000000000000001",
        text=text,
        author_meta=AuthorMeta(name=name, nickname=nickname),
        video_meta=VideoMeta(duration=duration) if duration is not None else None,
        hashtags=list(hashtags),
        stats=VideoStats(play_count=50000, digg_count=5000),
    )


class TestAnalyzeForTemplates:

    def setup_method(self):
        self.analyzer = ContentAnalyzer()

    def test_section_timing(self):
        sections = self.analyzer.analyze_for_templates(_video(duration=30))

        assert [s.type for s in sections] == ["intro", "content", "outro"]
        assert [s.start_time for s in sections] == [0, 6.0, 24.0]
        assert [s.duration for s in sections] == [6.0, 18.0, 6.0]

    def test_durations_are_rounded(self):
        sections = self.analyzer.analyze_for_templates(_video(duration=12.34))

        assert sections[0].duration == 2.5
        assert sections[1].duration == 7.4
        assert sections[2].start_time == 9.9

    def test_overlays_from_text_and_hashtags(self):
        intro, content, outro = self.analyzer.analyze_for_templates(_video())

        assert [o.text for o in intro.text_overlays] == ["Learn this dance in 30 seconds"]
        assert intro.text_overlays[0].position == {"x": 50, "y": 30}
        assert [o.text for o in content.text_overlays] == [
            "Follow the steps slowly and repeat",
            "#dance #fyp #viral",
        ]
        assert content.text_overlays[1].style["font_size"] == 18
        assert content.text_overlays[1].style["font_weight"] == "normal"
        assert [o.text for o in outro.text_overlays] == ["Follow for more!", "@Creator"]

    def test_overlay_text_is_truncated(self):
        intro, _, _ = self.analyzer.analyze_for_templates(_video(text="x" * 80))

        assert len(intro.text_overlays[0].text) == 50

    def test_short_sentences_and_no_hashtags(self):
        intro, content, outro = self.analyzer.analyze_for_templates(
            _video(text="Wow. Nice.", hashtags=(), nickname=None, name=None)
        )

        assert intro.text_overlays == []
        assert content.text_overlays == []
        assert [o.text for o in outro.text_overlays] == ["Follow for more!"]

    def test_falls_back_to_author_name(self):
        _, _, outro = self.analyzer.analyze_for_templates(_video(nickname=None, name="creator"))

        assert outro.text_overlays[-1].text == "@creator"

    @pytest.mark.parametrize("duration", [0, -3])
    def test_no_sections_without_duration(self, duration):
        assert self.analyzer.analyze_for_templates(_video(duration=duration)) == []

    def test_missing_video_meta(self):
        with pytest.raises(TransformationError) as exc_info:
            self.analyzer.analyze_for_templates(_video(duration=None))

        assert exc_info.value.context["item_id"] == "7300000000000000001"


class TestCategorize:

    def setup_method(self):
        self.analyzer = ContentAnalyzer()

    def test_hashtags_checked_first(self):
        video = _video(text="my morning makeup routine", hashtags=("gymtok",))
        assert self.analyzer.categorize(video) == "fitness"

    def test_falls_back_to_text(self):
        video = _video(text="Easy pasta recipe for busy nights", hashtags=("fyp",))
        assert self.analyzer.categorize(video) == "food"

    def test_keyword_table_order(self):
        video = _video(text="", hashtags=("learnwithme",))
        assert self.analyzer.categorize(video) == "tutorial"

    def test_default_category(self):
        video = _video(text="just vibes", hashtags=("fyp", "viral"))
        assert self.analyzer.categorize(video) == "other"
