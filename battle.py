"""Turn-based boss battles. Damage rolls are uniform random draws."""

import random
from typing import Literal

from pydantic import BaseModel, Field

PLAYER_START_HP = 100
PLAYER_DAMAGE = (10, 39)
BOSS_DAMAGE = (5, 24)

Outcome = Literal["ongoing", "victory", "defeat"]


class BattleState(BaseModel):
    player_hp: int = Field(PLAYER_START_HP, ge=0)
    boss_hp: int = Field(..., ge=0)
    player_damage: int = 0
    boss_damage: int = 0
    outcome: Outcome = "ongoing"


def start_battle(boss) -> BattleState:
    return BattleState(player_hp=PLAYER_START_HP, boss_hp=boss.hp)


def battle_turn(state: BattleState, rng: random.Random = None) -> BattleState:
    """Resolve one exchange of blows. A boss knocked out wins even if the player also falls."""
    if state.outcome != "ongoing":
        return state
    rng = rng or random
    player_damage = rng.randint(*PLAYER_DAMAGE)
    boss_damage = rng.randint(*BOSS_DAMAGE)
    boss_hp = max(0, state.boss_hp - player_damage)
    player_hp = max(0, state.player_hp - boss_damage)
    if boss_hp <= 0:
        outcome = "victory"
    elif player_hp <= 0:
        outcome = "defeat"
    else:
        outcome = "ongoing"
    return BattleState(
        player_hp=player_hp,
        boss_hp=boss_hp,
        player_damage=player_damage,
        boss_damage=boss_damage,
        outcome=outcome,
    )
