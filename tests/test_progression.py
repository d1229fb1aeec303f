"""Tests for the progression engine: levels, rewards, spending, unlocks and upgrades."""
from datetime import date

import pytest

import catalog
from progression import (
    AlreadyCompleted,
    InsufficientFunds,
    InvalidAmount,
    Locked,
    UnknownStat,
    apply_experience,
    apply_reward,
    check_access,
    complete_source,
    completion_key,
    experience_for_level,
    is_unlocked,
    level_for_experience,
    level_progress,
    next_upgrade_cost,
    purchase_item,
    purchase_upgrade,
    spend_coins,
    upgrade_stat,
)
from schemas import HeroSheet, Profile


def make_profile(**fields):
    fields.setdefault("user_id", "u1")
    return Profile(**fields)


class TestLevels:

    @pytest.mark.parametrize("experience,level", [
        (0, 1), (99, 1), (100, 2), (399, 2), (400, 3), (899, 3), (900, 4), (10000, 11),
    ])
    def test_level_formula(self, experience, level):
        assert level_for_experience(experience) == level

    def test_exact_thresholds(self):
        for n in range(1, 60):
            assert level_for_experience(experience_for_level(n)) == n
            if n > 1:
                assert level_for_experience(experience_for_level(n) - 1) == n - 1

    def test_negative_experience_rejected(self):
        with pytest.raises(InvalidAmount):
            level_for_experience(-1)

    def test_level_progress(self):
        progress = level_progress(250)
        assert progress.level == 2
        assert progress.level_floor == 100
        assert progress.next_level_at == 400
        assert progress.percent == 50


class TestApplyExperience:

    def test_zero_is_identity(self):
        p = make_profile(experience=450, level=3)
        after = apply_experience(p, 0)
        assert after.level == p.level
        assert after.experience == p.experience

    def test_level_boundary(self):
        assert apply_experience(make_profile(experience=0), 100).level == 2
        assert apply_experience(make_profile(experience=0), 99).level == 1

    def test_monotonic(self):
        p = make_profile(experience=30)
        amounts = [0, 1, 5, 70, 100, 1000]
        results = [apply_experience(p, a).experience for a in amounts]
        assert results == sorted(results)

    def test_negative_rejected(self):
        with pytest.raises(InvalidAmount):
            apply_experience(make_profile(), -5)

    def test_input_not_mutated(self):
        p = make_profile(experience=10)
        apply_experience(p, 500)
        assert p.experience == 10
        assert p.level == 1


class TestApplyReward:

    def test_end_to_end_scenario(self):
        p = make_profile(experience=0, coins=100, level=1)
        after = apply_reward(p, coins=25, xp=100)
        assert (after.experience, after.coins, after.level) == (100, 125, 2)

    @pytest.mark.parametrize("coins,xp", [(-1, 10), (10, -1)])
    def test_negative_amounts_change_nothing(self, coins, xp):
        p = make_profile(coins=100)
        with pytest.raises(InvalidAmount):
            apply_reward(p, coins, xp)
        assert p.coins == 100
        assert p.experience == 0


class TestSpendCoins:

    @pytest.mark.parametrize("amount", [1, 50, 100])
    def test_spend_within_balance(self, amount):
        p = make_profile(coins=100, experience=400, level=3)
        after = spend_coins(p, amount)
        assert after.coins == 100 - amount
        assert after.model_dump(exclude={"coins"}) == p.model_dump(exclude={"coins"})

    def test_insufficient_funds(self):
        with pytest.raises(InsufficientFunds) as exc:
            spend_coins(make_profile(coins=40), 50)
        assert exc.value.shortfall == 10

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_rejected(self, amount):
        with pytest.raises(InvalidAmount):
            spend_coins(make_profile(coins=100), amount)


class TestUnlocks:

    @pytest.mark.parametrize("level,unlock_level,expected", [
        (3, 3, True), (2, 3, False), (4, 3, True), (1, 1, True), (11, 12, False),
    ])
    def test_is_unlocked(self, level, unlock_level, expected):
        assert is_unlocked(level, unlock_level) is expected

    def test_locked_source(self):
        castle = catalog.get_source("checkpoint", "grammar-castle")
        with pytest.raises(Locked) as exc:
            check_access(2, castle, frozenset())
        assert exc.value.unlock_level == 3

    def test_completed_source(self):
        village = catalog.get_source("checkpoint", "starting-village")
        with pytest.raises(AlreadyCompleted):
            check_access(1, village, frozenset({"starting-village"}))

    def test_daily_challenge_resets_per_day(self):
        challenge = catalog.get_source("daily_challenge", "math-basics")
        monday, tuesday = date(2026, 10, 19), date(2026, 10, 20)
        completed = frozenset({completion_key(challenge, monday)})
        with pytest.raises(AlreadyCompleted):
            check_access(1, challenge, completed, monday)
        assert check_access(1, challenge, completed, tuesday) == "math-basics@2026-10-20"


class TestCompleteSource:

    def test_boss_reward_and_completion(self):
        ogre = catalog.get_source("boss", "algebra-ogre")
        after = complete_source(make_profile(coins=100), ogre)
        assert after.coins == 200
        assert after.experience == 300
        assert after.level == 2
        assert after.completed == ["algebra-ogre"]

    def test_second_completion_rejected(self):
        ogre = catalog.get_source("boss", "algebra-ogre")
        once = complete_source(make_profile(), ogre)
        with pytest.raises(AlreadyCompleted):
            complete_source(once, ogre)

    def test_locked_boss_gives_nothing(self):
        dragon = catalog.get_source("boss", "reading-dragon")
        p = make_profile(experience=900, level=4)
        with pytest.raises(Locked):
            complete_source(p, dragon)
        assert p.completed == []


class TestUpgrades:

    def test_cost_escalation(self):
        sheet = HeroSheet(upgrade_costs={"health": 10, "attack": 15, "defense": 12, "speed": 8})
        once = upgrade_stat(sheet, "health", 10)
        assert once.upgrade_costs["health"] == 12
        assert once.stats["health"] == 105
        twice = upgrade_stat(once, "health", once.upgrade_costs["health"])
        assert twice.upgrade_costs["health"] == 14
        assert twice.stats["health"] == 110
        assert twice.stats["attack"] == sheet.stats["attack"]

    @pytest.mark.parametrize("cost,expected", [(8, 9), (10, 12), (12, 14), (15, 18), (100, 120)])
    def test_next_upgrade_cost(self, cost, expected):
        assert next_upgrade_cost(cost) == expected

    def test_unknown_stat(self):
        with pytest.raises(UnknownStat):
            upgrade_stat(HeroSheet(), "charisma", 10)

    def test_purchase_upgrade_pays_and_upgrades(self):
        after = purchase_upgrade(make_profile(coins=20), "speed")
        assert after.coins == 12
        assert after.character.stats["speed"] == 20
        assert after.character.upgrade_costs["speed"] == 9

    def test_purchase_upgrade_without_funds(self):
        p = make_profile(coins=5)
        with pytest.raises(InsufficientFunds):
            purchase_upgrade(p, "health")
        assert p.character is None


class TestShop:

    def test_purchase_item(self):
        boost = catalog.get_source("shop_item", "xp-boost")
        after = purchase_item(make_profile(coins=100), boost)
        assert after.coins == 50
        assert after.inventory == ["xp-boost"]

    def test_purchase_item_not_affordable(self):
        crown = catalog.get_source("shop_item", "golden-crown")
        with pytest.raises(InsufficientFunds):
            purchase_item(make_profile(coins=100), crown)

    def test_locked_item_spends_nothing(self):
        relic = catalog.get_source("shop_item", "hint-crystal").model_copy(update={"unlock_level": 5})
        p = make_profile(coins=500)
        with pytest.raises(Locked):
            purchase_item(p, relic)
        assert p.coins == 500
