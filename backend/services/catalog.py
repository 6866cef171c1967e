# =============================================================================
# BODY MANUAL BACKEND - ACHIEVEMENT CATALOG
# =============================================================================
"""
Default achievement definitions and catalog seeding.
"""

import logging
from typing import Any, Dict, List

from database.models import AchievementDefinition, BodyArea
from database.store import ProgressStore

logger = logging.getLogger(__name__)


_BODY_AREA_TITLES = {
    BodyArea.NERVENSYSTEM: ("Vagus-Virtuose", "🧠"),
    BodyArea.HORMONE: ("Hormon-Harmonie", "⚖️"),
    BodyArea.ZIRKADIAN: ("Rhythmus-Hüter", "⏰"),
    BodyArea.MIKROBIOM: ("Darm-Gärtner", "🌿"),
    BodyArea.BEWEGUNG: ("Faszien-Flow", "🤸"),
    BodyArea.FASTEN: ("Fasten-Meister", "🍃"),
    BodyArea.KAELTE: ("Kälte-Krieger", "❄️"),
    BodyArea.LICHT: ("Licht-Alchemist", "☀️"),
}


DEFAULT_ACHIEVEMENTS: List[Dict[str, Any]] = [
    # Session milestones
    {
        "id": "first-session",
        "name": "Erste Schritte",
        "description": "Schließe deine erste Übung ab",
        "category": "milestone",
        "criteria": {"type": "total_sessions", "target": 1},
        "badge_icon": "🌱",
        "points": 10,
        "rarity": "common",
    },
    {
        "id": "sessions-10",
        "name": "Energie-Erwachen",
        "description": "Schließe 10 Übungen ab",
        "category": "milestone",
        "criteria": {"type": "total_sessions", "target": 10},
        "badge_icon": "⚡",
        "points": 25,
        "rarity": "common",
    },
    {
        "id": "sessions-50",
        "name": "Resilienz-Architekt",
        "description": "Schließe 50 Übungen ab",
        "category": "milestone",
        "criteria": {"type": "total_sessions", "target": 50},
        "badge_icon": "🛡️",
        "points": 100,
        "rarity": "rare",
    },
    {
        "id": "sessions-250",
        "name": "Lebenswerk",
        "description": "Schließe 250 Übungen ab",
        "category": "milestone",
        "criteria": {"type": "total_sessions", "target": 250},
        "badge_icon": "🏛️",
        "points": 300,
        "rarity": "epic",
    },
    # Streaks
    {
        "id": "streak-3",
        "name": "Dranbleiber",
        "description": "Praktiziere 3 Tage in Folge",
        "category": "consistency",
        "criteria": {"type": "streak", "target": 3, "timeframe": "daily"},
        "badge_icon": "⭐",
        "points": 15,
        "rarity": "common",
    },
    {
        "id": "streak-7",
        "name": "Wochen-Krieger",
        "description": "Praktiziere 7 Tage in Folge",
        "category": "consistency",
        "criteria": {"type": "streak", "target": 7, "timeframe": "daily"},
        "badge_icon": "🔥",
        "points": 50,
        "rarity": "rare",
    },
    {
        "id": "streak-30",
        "name": "Monats-Meister",
        "description": "Praktiziere 30 Tage in Folge",
        "category": "consistency",
        "criteria": {"type": "streak", "target": 30, "timeframe": "daily"},
        "badge_icon": "🏆",
        "points": 200,
        "rarity": "epic",
    },
    {
        "id": "streak-100",
        "name": "Jahrhundert-Weiser",
        "description": "Praktiziere 100 Tage in Folge",
        "category": "consistency",
        "criteria": {"type": "streak", "target": 100, "timeframe": "daily"},
        "badge_icon": "👑",
        "points": 500,
        "rarity": "legendary",
    },
    # Weekly consistency
    {
        "id": "perfect-week",
        "name": "Perfekte Woche",
        "description": "Schließe 7 Übungen in einer Woche ab",
        "category": "consistency",
        "criteria": {"type": "consistency", "target": 1, "timeframe": "weekly",
                     "conditions": {"perfectWeek": True}},
        "badge_icon": "📅",
        "points": 75,
        "rarity": "rare",
    },
    {
        "id": "body-explorer",
        "name": "Körper-Forscher",
        "description": "Praktiziere alle 8 Bereiche in einer Woche",
        "category": "consistency",
        "criteria": {"type": "consistency", "target": 1, "timeframe": "weekly",
                     "conditions": {"allBodyAreas": True}},
        "badge_icon": "🧭",
        "points": 150,
        "rarity": "epic",
    },
    # Community milestones
    {
        "id": "community-joined",
        "name": "Gemeinsam Stark",
        "description": "Tritt der Community bei",
        "category": "community",
        "criteria": {"type": "milestone", "target": 1, "conditions": {"joinedCommunity": True}},
        "badge_icon": "🤝",
        "points": 20,
        "rarity": "common",
    },
    {
        "id": "progress-shared",
        "name": "Inspiration",
        "description": "Teile deinen Fortschritt",
        "category": "community",
        "criteria": {"type": "milestone", "target": 1, "conditions": {"sharedProgress": True}},
        "badge_icon": "📣",
        "points": 20,
        "rarity": "common",
    },
] + [
    # Body area mastery
    {
        "id": f"mastery-{area.value}",
        "name": title,
        "description": f"Schließe 25 Übungen im Bereich {area.value} ab",
        "category": "mastery",
        "criteria": {"type": "body_area_mastery", "target": 25, "bodyArea": area.value},
        "badge_icon": icon,
        "points": 100,
        "rarity": "rare",
    }
    for area, (title, icon) in _BODY_AREA_TITLES.items()
]


def default_definitions() -> list[AchievementDefinition]:
    """Validated default catalog."""
    return [AchievementDefinition.model_validate(entry) for entry in DEFAULT_ACHIEVEMENTS]


async def seed_achievements(store: ProgressStore) -> int:
    """
    Insert the default catalog, leaving existing entries untouched.

    Returns:
        Number of newly inserted definitions
    """
    inserted = 0
    for definition in default_definitions():
        if await store.insert_definition(definition):
            inserted += 1

    logger.info(f"Seeded {inserted} achievements ({len(DEFAULT_ACHIEVEMENTS)} in catalog)")
    return inserted
