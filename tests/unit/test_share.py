"""Share text and link tests."""

from urllib.parse import parse_qs, urlparse

from goalplanner.goals.share import (
    Progress,
    default_share_type,
    generate_share_links,
    generate_share_text,
    public_goal_url,
)


class TestShareText:
    def test_progress(self):
        text = generate_share_text("Learn Spanish", "progress", Progress(2, 5, 12))
        assert '"Learn Spanish"' in text
        assert "2/5 steps complete (Day 12)" in text

    def test_milestone_percent(self):
        text = generate_share_text("Learn Spanish", "milestone", Progress(3, 4, 1))
        assert text.startswith("🚀 75% complete")

    def test_completion(self):
        text = generate_share_text("Learn Spanish", "completion", Progress(5, 5, 30))
        assert "I just completed my goal" in text

    def test_zero_steps_percent(self):
        assert Progress(0, 0, 0).percent == 0

    def test_default_type(self):
        assert default_share_type("completed") == "completion"
        assert default_share_type("active") == "progress"


class TestShareLinks:
    def test_links_encode_text_and_url(self):
        url = public_goal_url("https://goalplanner.app/", "alice", "learn-spanish")
        assert url == "https://goalplanner.app/alice/goals/learn-spanish"
        links = generate_share_links("Hi & bye", url)
        query = parse_qs(urlparse(links["twitter"]).query)
        assert query["text"] == ["Hi & bye"]
        assert query["url"] == [url]
        assert parse_qs(urlparse(links["linkedin"]).query)["url"] == [url]
        assert parse_qs(urlparse(links["facebook"]).query)["u"] == [url]
