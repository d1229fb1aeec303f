"""Static game catalogs: characters, checkpoints, bosses, daily challenges and shop items."""

from typing import Dict, List, Optional

from schemas import Character, CharacterStats, Checkpoint, Boss, DailyChallenge, ShopItem, RewardSource

CHARACTERS: List[Character] = [
    Character(
        id="math-wizard",
        name="Math Wizard",
        class_label="Number Cruncher",
        description="Master of equations and mathematical mysteries.",
        stats=CharacterStats(strength=5, intelligence=9, agility=6),
    ),
    Character(
        id="grammar-guardian",
        name="Grammar Guardian",
        class_label="Word Protector",
        description="Defender of proper language and syntax.",
        stats=CharacterStats(strength=7, intelligence=8, agility=5),
    ),
    Character(
        id="reading-ranger",
        name="Reading Ranger",
        class_label="Text Explorer",
        description="Scout of comprehension and critical thinking.",
        stats=CharacterStats(strength=6, intelligence=7, agility=8),
    ),
]

# Checkpoint coordinates are percentages of the world map.
CHECKPOINTS: List[Checkpoint] = [
    Checkpoint(id="starting-village", name="Starting Village", zone="starting_area", subject="Math",
               questions_count=5, x=50, y=70, coins=25, xp=100, unlock_level=1, difficulty=1),
    Checkpoint(id="algebra-forest", name="Algebra Forest", zone="forest", subject="Math",
               questions_count=8, x=20, y=50, coins=40, xp=150, unlock_level=2, difficulty=1),
    Checkpoint(id="grammar-castle", name="Grammar Castle", zone="castle", subject="Writing",
               questions_count=10, x=50, y=30, coins=60, xp=200, unlock_level=3, difficulty=2),
    Checkpoint(id="reading-mountains", name="Reading Mountains", zone="mountains", subject="Reading",
               questions_count=12, x=75, y=45, coins=75, xp=250, unlock_level=4, difficulty=2),
    Checkpoint(id="calculus-caverns", name="Calculus Caverns", zone="caverns", subject="Math",
               questions_count=15, x=25, y=20, coins=100, xp=350, unlock_level=6, difficulty=3),
    Checkpoint(id="essay-temple", name="Essay Temple", zone="temple", subject="Writing",
               questions_count=8, x=75, y=20, coins=120, xp=400, unlock_level=7, difficulty=3),
    Checkpoint(id="crystal-tower", name="Crystal Tower", zone="tower", subject="Mixed",
               questions_count=20, x=50, y=10, coins=200, xp=500, unlock_level=10, difficulty=3),
]

BOSSES: List[Boss] = [
    Boss(id="algebra-ogre", name="Algebra Ogre", difficulty=1, hp=100, coins=100, xp=300,
         unlock_level=1, weaknesses=["Linear Equations", "Basic Algebra"]),
    Boss(id="grammar-gargoyle", name="Grammar Gargoyle", difficulty=2, hp=150, coins=150, xp=450,
         unlock_level=3, weaknesses=["Punctuation", "Sentence Structure"]),
    Boss(id="reading-dragon", name="Reading Dragon", difficulty=3, hp=200, coins=200, xp=600,
         unlock_level=5, weaknesses=["Comprehension", "Critical Analysis"]),
    Boss(id="calculus-demon", name="Calculus Demon", difficulty=4, hp=300, coins=300, xp=800,
         unlock_level=8, weaknesses=["Derivatives", "Integrals", "Limits"]),
    Boss(id="sat-sovereign", name="SAT Sovereign", difficulty=5, hp=500, coins=500, xp=1200,
         unlock_level=12, weaknesses=["All Subjects"]),
]

DAILY_CHALLENGES: List[DailyChallenge] = [
    DailyChallenge(id="math-basics", name="Algebra Fundamentals", subject="Mathematics",
                   difficulty=1, coins=50, xp=200, time_limit=15, questions=10),
    DailyChallenge(id="reading-comprehension", name="Literary Analysis", subject="Reading",
                   difficulty=2, coins=75, xp=300, time_limit=20, questions=8),
    DailyChallenge(id="grammar-advanced", name="Advanced Grammar", subject="Writing",
                   difficulty=3, coins=100, xp=500, time_limit=25, questions=12),
]

SHOP_ITEMS: List[ShopItem] = [
    ShopItem(id="xp-boost", name="XP Boost", price=50, item_type="boost",
             effect="+100% XP for 3 questions"),
    ShopItem(id="time-freeze", name="Time Freeze", price=75, item_type="power-up",
             effect="Pause timer for 30s"),
    ShopItem(id="hint-crystal", name="Hint Crystal", price=100, item_type="power-up",
             effect="Eliminate 1 wrong answer"),
    ShopItem(id="golden-crown", name="Golden Crown", price=200, item_type="cosmetic",
             effect="Cosmetic upgrade"),
    ShopItem(id="shield-protection", name="Shield Protection", price=150, item_type="power-up",
             effect="No penalty for 1 mistake"),
    ShopItem(id="coin-multiplier", name="Coin Multiplier", price=120, item_type="boost",
             effect="+50% coins for 5 challenges"),
]

_SOURCES = {
    "checkpoint": {c.id: c for c in CHECKPOINTS},
    "boss": {b.id: b for b in BOSSES},
    "daily_challenge": {d.id: d for d in DAILY_CHALLENGES},
    "shop_item": {s.id: s for s in SHOP_ITEMS},
}
_CHARACTERS: Dict[str, Character] = {c.id: c for c in CHARACTERS}


def get_character(character_id: str) -> Optional[Character]:
    return _CHARACTERS.get(character_id)


def get_source(kind: str, source_id: str) -> Optional[RewardSource]:
    """Look up a reward source by kind and id; None when unknown."""
    return _SOURCES.get(kind, {}).get(source_id)


def all_source_ids() -> List[str]:
    return [source_id for table in _SOURCES.values() for source_id in table]
