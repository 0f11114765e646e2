import unittest
from datetime import datetime

from socialhub.services.analytics_validator import (
    calculate_engagement,
    clean_analytics_for_platform,
    get_allowed_analytics_fields,
    validate_analytics,
)


class TestCleanAnalytics(unittest.TestCase):

    def test_instagram_post_drops_views_and_renames_saved(self):
        cleaned = clean_analytics_for_platform("INSTAGRAM", {"views": 5, "saved": 3}, "post")
        self.assertEqual(set(cleaned), {"saves", "lastUpdated"})
        self.assertEqual(cleaned["saves"], 3)
        self.assertIsInstance(cleaned["lastUpdated"], datetime)

    def test_instagram_reel_keeps_views_as_plays_and_shares(self):
        cleaned = clean_analytics_for_platform("INSTAGRAM", {"views": 40, "shares": 2, "likes": 7}, "reel")
        self.assertEqual(cleaned["plays"], 40)
        self.assertEqual(cleaned["shares"], 2)
        self.assertEqual(cleaned["likes"], 7)
        self.assertNotIn("views", cleaned)

    def test_instagram_post_drops_shares(self):
        cleaned = clean_analytics_for_platform("INSTAGRAM", {"shares": 4, "likes": 1}, "post")
        self.assertNotIn("shares", cleaned)

    def test_facebook_non_video_drops_video_metrics(self):
        cleaned = clean_analytics_for_platform("FACEBOOK", {"views": 10}, "post")
        self.assertNotIn("views", cleaned)

        cleaned = clean_analytics_for_platform(
            "FACEBOOK", {"views": 10, "averageWatchTime": 3, "reach": 9}, "video"
        )
        self.assertEqual(cleaned["views"], 10)
        self.assertEqual(cleaned["averageWatchTime"], 3)
        self.assertEqual(cleaned["reach"], 9)

    def test_engagement_is_never_stored(self):
        cleaned = clean_analytics_for_platform("LINKEDIN", {"likes": 1, "engagement": 99}, "post")
        self.assertNotIn("engagement", cleaned)

    def test_unknown_platform_and_non_dict(self):
        self.assertEqual(clean_analytics_for_platform("MYSPACE", {"likes": 1}), {})
        self.assertEqual(clean_analytics_for_platform("FACEBOOK", None), {})
        self.assertEqual(clean_analytics_for_platform("FACEBOOK", [1, 2]), {})

    def test_inapplicable_metrics_dropped(self):
        cleaned = clean_analytics_for_platform("YOUTUBE", {"views": 100, "saves": 3, "clicks": 2}, "upload")
        self.assertEqual(cleaned["views"], 100)
        self.assertNotIn("saves", cleaned)
        self.assertNotIn("clicks", cleaned)

    def test_existing_last_updated_is_kept(self):
        stamp = datetime(2024, 1, 1)
        cleaned = clean_analytics_for_platform("LINKEDIN", {"likes": 1, "lastUpdated": stamp})
        self.assertEqual(cleaned["lastUpdated"], stamp)


class TestEngagement(unittest.TestCase):

    def test_instagram_counts_saves_and_reel_shares(self):
        analytics = {"likes": 10, "comments": 2, "saves": 3, "shares": 1}
        self.assertEqual(calculate_engagement("INSTAGRAM", analytics), 16)
        self.assertEqual(calculate_engagement("INSTAGRAM", {"likes": 10, "comments": 2, "saves": 3}), 15)

    def test_other_platforms_ignore_saves(self):
        analytics = {"likes": 10, "comments": 2, "shares": 4, "saves": 100}
        for platform in ("FACEBOOK", "LINKEDIN", "YOUTUBE"):
            self.assertEqual(calculate_engagement(platform, analytics), 16)

    def test_missing_metrics_count_as_zero(self):
        self.assertEqual(calculate_engagement("FACEBOOK", {}), 0)
        self.assertEqual(calculate_engagement("FACEBOOK", None), 0)


class TestValidateAnalytics(unittest.TestCase):

    def test_reports_invalid_fields(self):
        result = validate_analytics("INSTAGRAM", {"likes": 1, "clicks": 2, "lastUpdated": "x"})
        self.assertFalse(result["valid"])
        self.assertEqual(result["errors"], ["Invalid field 'clicks' for platform 'INSTAGRAM'"])

    def test_unknown_platform(self):
        result = validate_analytics("MYSPACE", {})
        self.assertFalse(result["valid"])

    def test_allowed_fields(self):
        self.assertEqual(
            get_allowed_analytics_fields("linkedin"),
            ["clicks", "comments", "impressions", "likes", "shares"],
        )
        self.assertEqual(get_allowed_analytics_fields("unknown"), [])


if __name__ == "__main__":
    unittest.main()
