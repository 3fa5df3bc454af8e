import unittest
from datetime import datetime, timedelta, timezone

from parallax.core.article import Article
from parallax.core.scoring import (
    ScoringStrategy,
    build_fingerprint,
    filter_by_temporal_proximity,
    parse_pub_date,
    parse_recency,
    round_percent,
    score_article,
    score_article_soft,
    score_article_with_seed,
    score_with_strategy,
    temporal_relevance_bonus,
)

SEED = datetime(2024, 3, 10, tzinfo=timezone.utc)


def article(title, description="", pub_date=""):
    return Article(title=title, link="https://example.com/story", description=description, pub_date=pub_date)


class TestKeywordScores(unittest.TestCase):
    def test_election_policy_example(self):
        item = article("New election policy announced")
        tokens = ["election", "policy"]
        self.assertEqual(score_article(item, tokens), 100)
        self.assertEqual(score_article_with_seed(item, tokens, ["Jane Smith"]), 60)

    def test_empty_topic_scores_zero(self):
        self.assertEqual(score_article(article("New election policy announced"), []), 0)
        self.assertEqual(score_article_soft(article("New election policy announced"), []), 0)

    def test_partial_overlap_rounds_half_up(self):
        item = article("Election results", description="turnout was high")
        self.assertEqual(score_article(item, ["election", "policy", "turnout"]), 67)
        self.assertEqual(round_percent(0.125), 13)

    def test_seeded_score_stays_in_range(self):
        item = article("Jane Smith wins election", description="policy shift")
        for entities in ([], ["Jane Smith"], ["Jane Smith", "Ohio"], ["nobody"]):
            score = score_article_with_seed(item, ["election", "policy"], entities)
            self.assertGreaterEqual(score, 0)
            self.assertLessEqual(score, 100)
        self.assertEqual(score_article_with_seed(item, ["election", "policy"], ["jane smith"]), 100)

    def test_soft_matches_shared_prefix(self):
        item = article("Sanctions imposed on exporters")
        self.assertEqual(score_article(item, ["sanction"]), 0)
        self.assertEqual(score_article_soft(item, ["sanction"]), 100)

    def test_strategy_dispatch_accepts_strings(self):
        fingerprint = build_fingerprint("election policy")
        item = article("New election policy announced")
        self.assertEqual(score_with_strategy(item, fingerprint, "exact"), 100)
        self.assertEqual(score_with_strategy(item, fingerprint, ScoringStrategy.SEEDED), 60)


class TestFingerprint(unittest.TestCase):
    def test_entities_join_tokens(self):
        fingerprint = build_fingerprint("Election policy", ["Jane Smith", "Jane Smith", " "], SEED)
        self.assertEqual(fingerprint.tokens, ("election", "policy", "jane", "smith"))
        self.assertEqual(fingerprint.entities, ("Jane Smith",))
        self.assertEqual(fingerprint.seed_date, SEED)

    def test_naive_seed_date_is_utc(self):
        fingerprint = build_fingerprint("x", seed_date=datetime(2024, 3, 10))
        self.assertEqual(fingerprint.seed_date, SEED)


class TestDates(unittest.TestCase):
    def test_relative_ages(self):
        self.assertEqual(parse_pub_date("3 hours ago", now=SEED), SEED - timedelta(hours=3))
        self.assertEqual(parse_pub_date("2 days ago", now=SEED), SEED - timedelta(days=2))

    def test_rfc822_and_iso(self):
        self.assertEqual(parse_pub_date("Sun, 10 Mar 2024 00:00:00 GMT"), SEED)
        self.assertEqual(parse_pub_date("2024-03-10T00:00:00Z"), SEED)
        self.assertEqual(parse_pub_date("2024-03-10T00:00:00"), SEED)

    def test_unparseable_is_none(self):
        self.assertIsNone(parse_pub_date(""))
        self.assertIsNone(parse_pub_date(None))
        self.assertIsNone(parse_pub_date("sometime soon"))

    def test_recency_labels(self):
        self.assertEqual(parse_recency("2024-03-09T23:30:00Z", now=SEED).label, "< 1h ago")
        self.assertEqual(parse_recency("2024-03-09T19:00:00Z", now=SEED).label, "5h ago")
        self.assertEqual(parse_recency("2024-03-07T00:00:00Z", now=SEED).label, "3d ago")
        unknown = parse_recency("garbage", now=SEED)
        self.assertEqual(unknown.label, "unknown")
        self.assertIsNone(unknown.age)


class TestTemporal(unittest.TestCase):
    def test_bonus_is_zero_without_pub_date(self):
        self.assertEqual(temporal_relevance_bonus(article("x"), SEED), 0)

    def test_bonus_is_zero_without_seed(self):
        self.assertEqual(temporal_relevance_bonus(article("x", pub_date="2024-03-10"), None), 0)

    def test_bonus_bands(self):
        self.assertEqual(temporal_relevance_bonus(article("x", pub_date="2024-03-12T00:00:00Z"), SEED), 10)
        self.assertEqual(temporal_relevance_bonus(article("x", pub_date="2024-03-20T00:00:00Z"), SEED), 0)
        self.assertEqual(temporal_relevance_bonus(article("x", pub_date="2024-04-20T00:00:00Z"), SEED), -10)
        self.assertEqual(temporal_relevance_bonus(article("x", pub_date="whenever"), SEED), 0)

    def test_filter_keeps_undated_and_nearby(self):
        near = article("near", pub_date="2024-03-12T00:00:00Z")
        far = article("far", pub_date="2023-01-01T00:00:00Z")
        undated = article("undated")
        self.assertEqual(filter_by_temporal_proximity([near, far, undated], SEED), [near, undated])

    def test_filter_without_seed_is_identity(self):
        items = [article("a", pub_date="2023-01-01"), article("b")]
        self.assertEqual(filter_by_temporal_proximity(items, None), items)


if __name__ == "__main__":
    unittest.main()
