"""
Content Analyzer: derive template sections and a category from a video.

The section split is a heuristic; most short videos follow a recognizable
hook / content / call-to-action structure:

    intro    first 20% of the video
    content  middle 60%
    outro    last 20%
"""

from typing import List, Tuple
import re
from schemas.video import VideoRecord, TemplateSection, TextOverlay
from core.exceptions import TransformationError
import logging

logger = logging.getLogger(__name__)

INTRO_SHARE = 0.2
CONTENT_SHARE = 0.6
OUTRO_SHARE = 0.2

OVERLAY_MAX_CHARS = 50
MIN_SENTENCE_CHARS = 10
HASHTAG_OVERLAY_COUNT = 3

# Checked in order; the first matching category wins
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("product", ["product", "unboxing", "review", "haul", "shopping"]),
    ("tutorial", ["tutorial", "how to", "diy", "learn", "step by step", "tips"]),
    ("dance", ["dance", "choreography", "challenge", "trending dance"]),
    ("comedy", ["comedy", "funny", "joke", "humor", "prank"]),
    ("lifestyle", ["lifestyle", "day in the life", "routine", "vlog"]),
    ("fashion", ["fashion", "outfit", "style", "clothing", "accessories"]),
    ("beauty", ["beauty", "makeup", "skincare", "haircare", "cosmetics"]),
    ("food", ["food", "recipe", "cooking", "baking", "meal prep"]),
    ("fitness", ["fitness", "workout", "exercise", "gym", "training"]),
    ("educational", ["facts", "learn", "education", "knowledge", "science"]),
]
DEFAULT_CATEGORY = "other"

_SENTENCE_SPLIT = re.compile(r"[.!?] ")


def _round_duration(value: float) -> float:
    return round(value * 10) / 10


def _overlay(
    text: str,
    x: float = 50,
    y: float = 50,
    font_size: int = 22,
    font_weight: str = "bold"
) -> TextOverlay:
    return TextOverlay(
        text=text,
        position={"x": x, "y": y},
        style={"font_size": font_size, "font_weight": font_weight, "color": "#ffffff"}
    )


class ContentAnalyzer:
    """Heuristic template analysis of scraped videos"""

    def analyze_for_templates(self, video: VideoRecord) -> List[TemplateSection]:
        """
        Split a video into intro, content and outro sections with overlays.

        Returns an empty list when the video has no usable duration.

        Raises:
            TransformationError: If the record lacks the metadata needed
        """
        if video.video_meta is None:
            raise TransformationError(
                f"Video {video.id} has no video metadata",
                context={"item_id": video.id}
            )

        total_duration = video.video_meta.duration or 0
        if total_duration <= 0:
            logger.warning(f"Invalid video duration for analysis: {video.id}")
            return []

        try:
            sentences = [s for s in _SENTENCE_SPLIT.split(video.text) if len(s) > MIN_SENTENCE_CHARS]

            intro = TemplateSection(
                type="intro",
                start_time=0,
                duration=_round_duration(total_duration * INTRO_SHARE),
            )
            if sentences:
                intro.text_overlays.append(_overlay(sentences[0][:OVERLAY_MAX_CHARS], y=30))

            content = TemplateSection(
                type="content",
                start_time=intro.duration,
                duration=_round_duration(total_duration * CONTENT_SHARE),
            )
            if len(sentences) > 1:
                content.text_overlays.append(_overlay(sentences[1][:OVERLAY_MAX_CHARS], y=50))
            if video.hashtags:
                tags = " ".join(f"#{tag}" for tag in video.hashtags[:HASHTAG_OVERLAY_COUNT])
                content.text_overlays.append(_overlay(tags, y=80, font_size=18, font_weight="normal"))

            outro = TemplateSection(
                type="outro",
                start_time=_round_duration(intro.duration + content.duration),
                duration=_round_duration(total_duration * OUTRO_SHARE),
            )
            outro.text_overlays.append(_overlay("Follow for more!", y=50, font_size=24))

            nickname = video.author_meta.nickname or video.author_meta.name
            if nickname:
                outro.text_overlays.append(_overlay(f"@{nickname}", y=75, font_size=20, font_weight="normal"))

        except Exception as e:
            raise TransformationError(
                f"Failed to analyze video {video.id}",
                context={"item_id": video.id},
                original_exception=e
            )

        return [intro, content, outro]

    def categorize(self, video: VideoRecord) -> str:
        """Match the keyword table against hashtags first, then the description"""
        hashtags = [tag.lower() for tag in video.hashtags]
        for category, keywords in CATEGORY_KEYWORDS:
            for hashtag in hashtags:
                if any(keyword in hashtag for keyword in keywords):
                    return category

        text = video.text.lower()
        for category, keywords in CATEGORY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return category

        return DEFAULT_CATEGORY
