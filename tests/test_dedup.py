import unittest

from parallax.core.article import Article
from parallax.core.dedup import deduplicate, normalize_title, normalize_url, title_similarity


class TestNormalizeUrl(unittest.TestCase):
    def test_www_and_trailing_slash_collide(self):
        self.assertEqual(normalize_url("https://example.com/a/"), normalize_url("https://www.example.com/a"))
        self.assertEqual(normalize_url("https://example.com/a/"), "example.com/a")

    def test_query_fragment_and_scheme_ignored(self):
        self.assertEqual(normalize_url("http://Example.com/a?utm=1#top"), "example.com/a")

    def test_relative_urls_pass_through(self):
        self.assertEqual(normalize_url("/just/a/path"), "/just/a/path")
        self.assertEqual(normalize_url(""), "")


class TestTitleSimilarity(unittest.TestCase):
    def test_normalize_title(self):
        self.assertEqual(normalize_title("Fed Raises Rates!"), "fedraisesrates")

    def test_containment_is_length_ratio(self):
        self.assertEqual(title_similarity("abc", "abcd"), 0.75)

    def test_character_overlap(self):
        self.assertEqual(title_similarity("abcd", "abce"), 0.75)
        self.assertEqual(title_similarity("abc", "xyzq"), 0.0)
        self.assertEqual(title_similarity("", "abc"), 0.0)


class TestDeduplicate(unittest.TestCase):
    def setUp(self):
        self.existing = [Article("Fed raises rates", "https://example.com/fed/")]
        self.incoming = [
            Article("Fed raises rates!", "https://other.org/x"),
            Article("Zoo 42 bingo", "https://www.example.com/fed"),
            Article("Quick jump", "https://news.test/q"),
            Article("Quick jump", "https://mirror.test/q"),
        ]

    def test_drops_url_and_title_duplicates(self):
        unique = deduplicate(self.existing, self.incoming)
        self.assertEqual([a.link for a in unique], ["https://news.test/q"])

    def test_idempotent_against_updated_existing(self):
        first = deduplicate(self.existing, self.incoming)
        self.assertEqual(deduplicate(self.existing + first, self.incoming), [])

    def test_empty_existing_keeps_order(self):
        items = [Article("Zoo 42 bingo", "https://a.test/1"), Article("Quick jump", "https://a.test/2")]
        self.assertEqual(deduplicate([], items), items)


if __name__ == "__main__":
    unittest.main()
