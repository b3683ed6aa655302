"""Share text and social links for a goal's public page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote

ShareType = Literal["progress", "milestone", "completion"]


@dataclass(frozen=True)
class Progress:
    completed_steps: int
    total_steps: int
    days_since_start: int

    @property
    def percent(self) -> int:
        if self.total_steps == 0:
            return 0
        return round(self.completed_steps / self.total_steps * 100)


def default_share_type(goal_status: str) -> ShareType:
    return "completion" if goal_status == "completed" else "progress"


def generate_share_text(goal_title: str, share_type: ShareType, progress: Progress) -> str:
    if share_type == "completion":
        return f'🎉 I just completed my goal: "{goal_title}"!\n\nProud of this achievement. What are you working on?'
    if share_type == "milestone":
        return (
            f'🚀 {progress.percent}% complete on my goal: "{goal_title}"\n\n'
            f"The journey continues! {progress.completed_steps}/{progress.total_steps} steps done."
        )
    return (
        f'💪 Making progress on: "{goal_title}"\n\n'
        f"{progress.completed_steps}/{progress.total_steps} steps complete (Day {progress.days_since_start})\n\n"
        "What goals are you working towards?"
    )


def generate_share_links(text: str, url: str) -> dict[str, str]:
    encoded_text = quote(text, safe="")
    encoded_url = quote(url, safe="")
    return {
        "twitter": f"https://twitter.com/intent/tweet?text={encoded_text}&url={encoded_url}",
        "linkedin": f"https://www.linkedin.com/sharing/share-offsite/?url={encoded_url}",
        "facebook": f"https://www.facebook.com/sharer/sharer.php?u={encoded_url}",
    }


def public_goal_url(base_url: str, username: str, slug: str) -> str:
    return f"{base_url.rstrip('/')}/{quote(username, safe='')}/goals/{quote(slug, safe='')}"
