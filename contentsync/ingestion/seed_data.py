"""
Demo release data inserted when no catalog source is reachable.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

DEMO_RELEASES = [
    {
        "title": "Hollow Knight: Silksong",
        "slug": "hollow-knight-silksong",
        "summary": "Discover a haunting new kingdom in the sequel to Hollow Knight.",
        "image_id": "co1rgi",
        "platform": "PC, Nintendo Switch, PlayStation 5, Xbox Series X|S",
        "days_out": 22,
    },
    {
        "title": "Grand Theft Auto VI",
        "slug": "grand-theft-auto-vi",
        "summary": "The next chapter in the Grand Theft Auto franchise.",
        "image_id": "co87wx",
        "platform": "PlayStation 5, Xbox Series X|S",
        "days_out": 45,
    },
    {
        "title": "The Legend of Zelda: Tears of the Kingdom DLC",
        "slug": "zelda-tears-kingdom-dlc",
        "summary": "New quests, challenges and mysteries in Hyrule.",
        "image_id": "co5vmg",
        "platform": "Nintendo Switch",
        "days_out": 30,
    },
    {
        "title": "Final Fantasy VII Rebirth",
        "slug": "final-fantasy-vii-rebirth",
        "summary": "The second installment in the Final Fantasy VII Remake trilogy.",
        "image_id": None,
        "platform": "PlayStation 5",
        "days_out": 60,
    },
]


def demo_releases(today: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Demo releases with dates relative to ``today``."""
    today = today or datetime.now(timezone.utc)
    releases = []
    for demo in DEMO_RELEASES:
        release = dict(demo)
        release["release_date"] = (today + timedelta(days=demo["days_out"])).date().isoformat()
        releases.append(release)
    return releases
