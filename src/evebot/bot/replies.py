"""Keyword reply engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
import re

from evebot.mattermost.models import Post


AFFIRMATIVE_REPLY = "Yes I'm running"
FALLBACK_REPLY = "I did not understand you!"

# Probed in this order; the first hit wins.
DEFAULT_KEYWORDS = ("alive", "up", "running", "hello")


@dataclass(frozen=True)
class Reply:
    message: str
    root_id: str
    keyword: Optional[str] = None


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?:^|\W){re.escape(keyword)}(?:$|\W)", re.ASCII)


class ReplyEngine:
    """Maps a post to at most one canned reply, threaded to that post."""

    def __init__(self, *, bot_user_id: str, keywords: Sequence[str] = DEFAULT_KEYWORDS) -> None:
        if not keywords:
            raise ValueError("keywords cannot be empty.")
        self._bot_user_id = bot_user_id
        self._patterns = tuple((keyword, _keyword_pattern(keyword)) for keyword in keywords)

    def match_keyword(self, text: str) -> Optional[str]:
        for keyword, pattern in self._patterns:
            if pattern.search(text):
                return keyword
        return None

    def reply_to(self, post: Post) -> Optional[Reply]:
        if post.user_id == self._bot_user_id:
            return None

        keyword = self.match_keyword(post.message)
        if keyword is not None:
            return Reply(message=AFFIRMATIVE_REPLY, root_id=post.id, keyword=keyword)
        return Reply(message=FALLBACK_REPLY, root_id=post.id)
