"""
Progression engine for SAT Quest.

Every function here is a pure transition from one Profile snapshot to the
next. Nothing is persisted; callers commit the returned snapshot through the
profile store (see ``database.commit_transition``).
"""

import logging
from datetime import date
from math import isqrt
from typing import FrozenSet, Iterable, Optional

from pydantic import BaseModel

from schemas import HeroSheet, Profile, DailyChallenge, ShopItem

logger = logging.getLogger(__name__)

STAT_UPGRADE_STEP = 5


class ProgressionError(Exception):
    """Base class for rejected progression events."""


class InvalidAmount(ProgressionError):
    pass


class InsufficientFunds(ProgressionError):
    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        self.shortfall = needed - available
        super().__init__(f"Need {needed} coins, have {available}")


class Locked(ProgressionError):
    def __init__(self, source_id: str, unlock_level: int):
        self.source_id = source_id
        self.unlock_level = unlock_level
        super().__init__(f"{source_id} unlocks at level {unlock_level}")


class AlreadyCompleted(ProgressionError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"{key} has already been completed")


class UnknownStat(ProgressionError):
    pass


class LevelProgress(BaseModel):
    level: int
    experience: int
    level_floor: int
    next_level_at: int
    percent: int


# ---------- Levels ----------

def level_for_experience(experience: int) -> int:
    """floor(1 + sqrt(experience / 100)), computed exactly on integers."""
    if experience < 0:
        raise InvalidAmount(f"experience must be >= 0, got {experience}")
    return 1 + isqrt(experience) // 10


def experience_for_level(level: int) -> int:
    """Minimum experience at which ``level`` is reached."""
    if level < 1:
        raise InvalidAmount(f"level must be >= 1, got {level}")
    return 100 * (level - 1) ** 2


def level_progress(experience: int) -> LevelProgress:
    level = level_for_experience(experience)
    floor_xp = experience_for_level(level)
    next_xp = experience_for_level(level + 1)
    percent = (experience - floor_xp) * 100 // (next_xp - floor_xp)
    return LevelProgress(
        level=level,
        experience=experience,
        level_floor=floor_xp,
        next_level_at=next_xp,
        percent=percent,
    )


def is_unlocked(level: int, unlock_level: int) -> bool:
    return level >= unlock_level


# ---------- Coins and experience ----------

def apply_experience(profile: Profile, amount: int) -> Profile:
    if amount < 0:
        raise InvalidAmount(f"experience reward must be >= 0, got {amount}")
    experience = profile.experience + amount
    return profile.model_copy(update={
        "experience": experience,
        "level": level_for_experience(experience),
    })


def apply_reward(profile: Profile, coins: int, xp: int) -> Profile:
    """Credit coins and experience together; on a bad amount nothing changes."""
    if coins < 0:
        raise InvalidAmount(f"coin reward must be >= 0, got {coins}")
    if xp < 0:
        raise InvalidAmount(f"experience reward must be >= 0, got {xp}")
    credited = profile.model_copy(update={"coins": profile.coins + coins})
    return apply_experience(credited, xp)


def spend_coins(profile: Profile, amount: int) -> Profile:
    if amount <= 0:
        raise InvalidAmount(f"spend amount must be > 0, got {amount}")
    if profile.coins < amount:
        raise InsufficientFunds(amount, profile.coins)
    return profile.model_copy(update={"coins": profile.coins - amount})


# ---------- Character upgrades ----------

def next_upgrade_cost(cost: int) -> int:
    """floor(cost * 1.2) without going through floats."""
    return cost * 6 // 5


def upgrade_stat(character: HeroSheet, stat_name: str, cost: int) -> HeroSheet:
    """Raise one stat and escalate its cost. Funds are the caller's concern."""
    if stat_name not in character.stats:
        raise UnknownStat(f"unknown stat {stat_name!r}")
    stats = dict(character.stats)
    stats[stat_name] += STAT_UPGRADE_STEP
    costs = dict(character.upgrade_costs)
    costs[stat_name] = next_upgrade_cost(cost)
    return character.model_copy(update={"stats": stats, "upgrade_costs": costs})


def purchase_upgrade(profile: Profile, stat_name: str) -> Profile:
    """Pay for and apply one stat upgrade on the profile's hero sheet."""
    sheet = profile.character or HeroSheet()
    if stat_name not in sheet.upgrade_costs:
        raise UnknownStat(f"unknown stat {stat_name!r}")
    cost = sheet.upgrade_costs[stat_name]
    paid = spend_coins(profile, cost)
    return paid.model_copy(update={"character": upgrade_stat(sheet, stat_name, cost)})


# ---------- Gated content ----------

def completion_key(source, on: Optional[date] = None) -> str:
    """Daily challenges reset every calendar day; everything else completes once."""
    if isinstance(source, DailyChallenge):
        return f"{source.id}@{(on or date.today()).isoformat()}"
    return source.id


def check_access(level: int, source, completed: FrozenSet[str], on: Optional[date] = None) -> str:
    """Return the completion key for ``source`` if it may be played now."""
    if not is_unlocked(level, source.unlock_level):
        raise Locked(source.id, source.unlock_level)
    key = completion_key(source, on)
    if key in completed:
        raise AlreadyCompleted(key)
    return key


def record_completion(completed: Iterable[str], key: str) -> FrozenSet[str]:
    return frozenset(completed) | {key}


def complete_source(profile: Profile, source, on: Optional[date] = None) -> Profile:
    """Gate, reward and mark a checkpoint, boss or daily challenge in one step."""
    completed = frozenset(profile.completed)
    key = check_access(profile.level, source, completed, on)
    rewarded = apply_reward(profile, source.coins, source.xp)
    logger.info("%s completed %s: +%d coins, +%d xp", profile.user_id, key, source.coins, source.xp)
    return rewarded.model_copy(update={
        "completed": sorted(record_completion(completed, key)),
    })


def purchase_item(profile: Profile, item: ShopItem) -> Profile:
    if not is_unlocked(profile.level, item.unlock_level):
        raise Locked(item.id, item.unlock_level)
    paid = spend_coins(profile, item.price)
    return paid.model_copy(update={"inventory": list(profile.inventory) + [item.id]})
