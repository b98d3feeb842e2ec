from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from evebot.bot.replies import AFFIRMATIVE_REPLY, FALLBACK_REPLY, ReplyEngine
from evebot.mattermost.models import Post


BOT_ID = "bot-user"


def _post(message: str, *, user_id: str = "human", post_id: str = "post-1") -> Post:
    return Post(id=post_id, channel_id="chan", user_id=user_id, message=message)


class ReplyEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = ReplyEngine(bot_user_id=BOT_ID)

    def test_keyword_yields_affirmative_reply_threaded_to_post(self) -> None:
        reply = self.engine.reply_to(_post("hey are you alive?", post_id="p-42"))

        self.assertIsNotNone(reply)
        self.assertEqual(reply.message, AFFIRMATIVE_REPLY)
        self.assertEqual(reply.root_id, "p-42")
        self.assertEqual(reply.keyword, "alive")

    def test_keyword_inside_longer_word_does_not_match(self) -> None:
        reply = self.engine.reply_to(_post("aliveness check", post_id="p-7"))

        self.assertEqual(reply.message, FALLBACK_REPLY)
        self.assertEqual(reply.root_id, "p-7")
        self.assertIsNone(reply.keyword)

    def test_first_keyword_in_fixed_order_wins(self) -> None:
        reply = self.engine.reply_to(_post("up hello"))

        self.assertEqual(reply.message, AFFIRMATIVE_REPLY)
        self.assertEqual(reply.keyword, "up")

    def test_order_is_fixed_regardless_of_position_in_text(self) -> None:
        self.assertEqual(self.engine.match_keyword("hello, are you running"), "running")
        self.assertEqual(self.engine.match_keyword("running? still alive?"), "alive")

    def test_own_posts_get_no_reply(self) -> None:
        self.assertIsNone(self.engine.reply_to(_post("are you alive", user_id=BOT_ID)))
        self.assertIsNone(self.engine.reply_to(_post("gibberish", user_id=BOT_ID)))

    def test_each_keyword_matches_as_whole_word(self) -> None:
        for text in ("alive", "is it up?", "(running)", "hello there", "say:hello"):
            with self.subTest(text=text):
                reply = self.engine.reply_to(_post(text))
                self.assertEqual(reply.message, AFFIRMATIVE_REPLY)

    def test_matching_is_case_sensitive(self) -> None:
        reply = self.engine.reply_to(_post("Hello? ALIVE?"))

        self.assertEqual(reply.message, FALLBACK_REPLY)

    def test_word_characters_around_keyword_block_match(self) -> None:
        for text in ("setup", "upload", "hello_world", "rerunning", "up2date", ""):
            with self.subTest(text=text):
                self.assertIsNone(self.engine.match_keyword(text))

    def test_rejects_empty_keyword_list(self) -> None:
        with self.assertRaises(ValueError):
            ReplyEngine(bot_user_id=BOT_ID, keywords=())


if __name__ == "__main__":
    unittest.main()
