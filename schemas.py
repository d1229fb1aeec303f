"""
Database Schemas for SAT Quest

Each Pydantic model maps to a MongoDB collection (lowercased class name)
or to an entry of the static game catalogs.
Use these to validate incoming data and to help the database viewer.
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Dict, Union, Literal, Annotated
from datetime import datetime


class MapPosition(BaseModel):
    """Last known location of the player on the adventure map."""
    x: int
    y: int
    zone: str


class CharacterStats(BaseModel):
    strength: int = Field(..., ge=0)
    intelligence: int = Field(..., ge=0)
    agility: int = Field(..., ge=0)


class Character(BaseModel):
    """
    Static catalog entry for a selectable hero class.
    """
    id: str
    name: str
    class_label: str
    description: str = ""
    stats: CharacterStats


class HeroSheet(BaseModel):
    """
    Upgradable variant of the selected character.
    Each stat has its own upgrade cost which escalates after every purchase.
    """
    name: str = "Adventurer"
    class_label: str = "Student"
    stats: Dict[str, int] = Field(
        default_factory=lambda: {"health": 100, "attack": 25, "defense": 20, "speed": 15}
    )
    upgrade_costs: Dict[str, int] = Field(
        default_factory=lambda: {"health": 10, "attack": 15, "defense": 12, "speed": 8}
    )


class Profile(BaseModel):
    """
    Collection: "profile"
    Persisted progression record of a single user.
    """
    user_id: str = Field(..., min_length=1, description="Stable, unique user id")
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    level: int = Field(1, ge=1, description="Derived from experience, never set directly")
    experience: int = Field(0, ge=0)
    coins: int = Field(100, ge=0, description="Reward currency balance")
    selected_character_id: Optional[str] = None
    character: Optional[HeroSheet] = None
    map_position: Optional[MapPosition] = None
    completed: List[str] = Field(default_factory=list, description="Completion keys of reward sources")
    inventory: List[str] = Field(default_factory=list, description="Purchased shop item ids")
    version: int = Field(0, ge=0, description="Row version for compare-and-set writes")


# ---------- Reward sources ----------

class RewardSourceBase(BaseModel):
    id: str
    name: str
    description: str = ""
    coins: int = Field(0, ge=0, description="Coins credited on completion")
    xp: int = Field(0, ge=0, description="Experience credited on completion")
    unlock_level: int = Field(1, ge=1)
    difficulty: int = Field(1, ge=1, le=5)


class Checkpoint(RewardSourceBase):
    kind: Literal["checkpoint"] = "checkpoint"
    zone: str
    subject: str
    questions_count: int = Field(..., ge=1)
    x: int = Field(..., ge=0, le=100)
    y: int = Field(..., ge=0, le=100)


class Boss(RewardSourceBase):
    kind: Literal["boss"] = "boss"
    hp: int = Field(..., ge=1)
    weaknesses: List[str] = Field(default_factory=list)


class DailyChallenge(RewardSourceBase):
    kind: Literal["daily_challenge"] = "daily_challenge"
    subject: str
    time_limit: int = Field(..., ge=1, description="Minutes")
    questions: int = Field(..., ge=1)


class ShopItem(RewardSourceBase):
    kind: Literal["shop_item"] = "shop_item"
    price: int = Field(..., ge=1)
    item_type: Literal["power-up", "cosmetic", "boost"]
    effect: str = ""


RewardSource = Annotated[
    Union[Checkpoint, Boss, DailyChallenge, ShopItem],
    Field(discriminator="kind"),
]


class RewardLog(BaseModel):
    """
    Collection: "reward"
    Tracks coin and XP grants for audit/history.
    """
    user_id: str
    source_id: Optional[str] = None
    kind: Optional[str] = None
    reason: str = Field(..., description="Why the reward was granted")
    coins: int = Field(..., ge=0)
    xp: int = Field(0, ge=0)
    created_at: Optional[datetime] = None
