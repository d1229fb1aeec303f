import os
import logging
from contextlib import asynccontextmanager
from datetime import date
from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr
from typing import List, Optional, Callable

import catalog
from battle import BattleState, start_battle, battle_turn, PLAYER_START_HP
from database import (
    db,
    MongoProfileStore,
    ProfileNotFound,
    PersistenceFailure,
    StaleProfile,
    commit_transition,
)
from progression import (
    ProgressionError,
    InvalidAmount,
    InsufficientFunds,
    Locked,
    AlreadyCompleted,
    UnknownStat,
    apply_experience,
    apply_reward,
    check_access,
    complete_source,
    completion_key,
    is_unlocked,
    level_progress,
    purchase_item,
    purchase_upgrade,
)
from quiz import grade_quiz
from schemas import Profile, HeroSheet, MapPosition, RewardLog

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("satquest")

PROFILE_WRITE_RETRIES = int(os.getenv("PROFILE_WRITE_RETRIES", 3))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        MongoProfileStore(db).ensure_indexes()
    yield


app = FastAPI(title="SAT Quest API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return MongoProfileStore(db)


def http_error(exc: Exception) -> HTTPException:
    """Translate engine and store errors into HTTP responses."""
    if isinstance(exc, InsufficientFunds):
        return HTTPException(status_code=402, detail={
            "message": "Insufficient coins",
            "needed": exc.needed,
            "available": exc.available,
            "shortfall": exc.shortfall,
        })
    if isinstance(exc, Locked):
        return HTTPException(status_code=403, detail=f"Reach level {exc.unlock_level} to access {exc.source_id}")
    if isinstance(exc, AlreadyCompleted):
        return HTTPException(status_code=409, detail=f"{exc.key} already completed")
    if isinstance(exc, (InvalidAmount, UnknownStat)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ProfileNotFound):
        return HTTPException(status_code=404, detail="Profile not found")
    if isinstance(exc, StaleProfile):
        return HTTPException(status_code=409, detail="Profile was modified concurrently, try again")
    if isinstance(exc, PersistenceFailure):
        return HTTPException(status_code=503, detail=f"Profile store unavailable: {exc.reason[:80]}")
    return HTTPException(status_code=500, detail="Unexpected error")


def load_profile(store, user_id: str) -> Profile:
    try:
        return store.get_profile(user_id)
    except (ProfileNotFound, PersistenceFailure) as e:
        raise http_error(e)


def run_transition(store, user_id: str, transition: Callable[[Profile], Profile]):
    """Read, apply ``transition`` and commit; re-read and retry on a stale write."""
    attempts = 1 + max(0, PROFILE_WRITE_RETRIES)
    for attempt in range(1, attempts + 1):
        before = load_profile(store, user_id)
        try:
            after = transition(before)
        except ProgressionError as e:
            raise http_error(e)
        try:
            return before, commit_transition(store, before, after)
        except StaleProfile as e:
            logger.warning("Stale write for %s (attempt %d/%d)", user_id, attempt, attempts)
            if attempt == attempts:
                raise http_error(e)
        except (ProfileNotFound, PersistenceFailure) as e:
            raise http_error(e)


def log_reward(store, user_id: str, reason: str, coins: int, xp: int, source=None):
    entry = RewardLog(
        user_id=user_id,
        source_id=source.id if source is not None else None,
        kind=source.kind if source is not None else None,
        reason=reason,
        coins=coins,
        xp=xp,
    )
    try:
        store.log_reward(entry)
    except PersistenceFailure:
        logger.exception("Could not record reward audit entry for %s", user_id)


def profile_view(profile: Profile) -> dict:
    return {
        "profile": profile.model_dump(mode="json"),
        "progress": level_progress(profile.experience).model_dump(),
    }


def lookup(kind: str, source_id: str):
    source = catalog.get_source(kind, source_id)
    if source is None:
        raise HTTPException(status_code=404, detail=f"Unknown {kind.replace('_', ' ')}: {source_id}")
    return source


@app.get("/")
def root():
    return {"message": "SAT Quest Backend Ready"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = db.name if hasattr(db, 'name') else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ---------- Catalog endpoints ----------

@app.get("/api/catalog", response_model=dict)
def get_catalog():
    return {
        "characters": [c.model_dump() for c in catalog.CHARACTERS],
        "checkpoints": [c.model_dump() for c in catalog.CHECKPOINTS],
        "bosses": [b.model_dump() for b in catalog.BOSSES],
        "daily_challenges": [d.model_dump() for d in catalog.DAILY_CHALLENGES],
        "shop_items": [s.model_dump() for s in catalog.SHOP_ITEMS],
    }


# ---------- Profile endpoints ----------

class CreateProfile(BaseModel):
    user_id: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None


@app.post("/api/profile", response_model=dict)
def create_profile(payload: CreateProfile, store=Depends(get_store)):
    profile = Profile(user_id=payload.user_id, email=payload.email, display_name=payload.display_name)
    try:
        created = store.create_profile(profile)
    except PersistenceFailure as e:
        raise http_error(e)
    return profile_view(created)


@app.get("/api/profile/{user_id}", response_model=dict)
def get_profile(user_id: str, store=Depends(get_store)):
    return profile_view(load_profile(store, user_id))


@app.get("/api/profile/{user_id}/rewards", response_model=List[RewardLog])
def reward_history(user_id: str, limit: int = 50, store=Depends(get_store)):
    try:
        return store.reward_history(user_id, limit)
    except PersistenceFailure as e:
        raise http_error(e)


class ExperienceRequest(BaseModel):
    amount: int


@app.post("/api/profile/{user_id}/experience", response_model=dict)
def gain_experience(user_id: str, payload: ExperienceRequest, store=Depends(get_store)):
    before, after = run_transition(store, user_id, lambda p: apply_experience(p, payload.amount))
    if after.level > before.level:
        logger.info("%s reached level %d", user_id, after.level)
    return {**profile_view(after), "leveled_up": after.level > before.level}


class RewardRequest(BaseModel):
    coins: int = 0
    xp: int = 0
    reason: str = "Reward"


@app.post("/api/profile/{user_id}/reward", response_model=dict)
def grant_reward(user_id: str, payload: RewardRequest, store=Depends(get_store)):
    before, after = run_transition(store, user_id, lambda p: apply_reward(p, payload.coins, payload.xp))
    log_reward(store, user_id, payload.reason, payload.coins, payload.xp)
    return {**profile_view(after), "leveled_up": after.level > before.level}


@app.put("/api/profile/{user_id}/position", response_model=dict)
def move_to(user_id: str, payload: MapPosition, store=Depends(get_store)):
    _, after = run_transition(store, user_id, lambda p: p.model_copy(update={"map_position": payload}))
    return {"map_position": after.map_position.model_dump()}


# ---------- Character endpoints ----------

class SelectCharacter(BaseModel):
    character_id: str


@app.put("/api/profile/{user_id}/character", response_model=dict)
def select_character(user_id: str, payload: SelectCharacter, store=Depends(get_store)):
    character = catalog.get_character(payload.character_id)
    if character is None:
        raise HTTPException(status_code=404, detail=f"Unknown character: {payload.character_id}")

    def select(p: Profile) -> Profile:
        sheet = p.character or HeroSheet()
        if p.selected_character_id != character.id:
            # Upgrades carry over; the sheet only takes the new hero's name and class.
            sheet = sheet.model_copy(update={"name": character.name, "class_label": character.class_label})
        return p.model_copy(update={"selected_character_id": character.id, "character": sheet})

    _, after = run_transition(store, user_id, select)
    return profile_view(after)


class RenameCharacter(BaseModel):
    name: str


@app.patch("/api/profile/{user_id}/character", response_model=dict)
def rename_character(user_id: str, payload: RenameCharacter, store=Depends(get_store)):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Character name must not be empty")

    def rename(p: Profile) -> Profile:
        sheet = (p.character or HeroSheet()).model_copy(update={"name": name})
        return p.model_copy(update={"character": sheet})

    _, after = run_transition(store, user_id, rename)
    return {"character": after.character.model_dump()}


class UpgradeRequest(BaseModel):
    stat: str


@app.post("/api/profile/{user_id}/character/upgrade", response_model=dict)
def upgrade_character(user_id: str, payload: UpgradeRequest, store=Depends(get_store)):
    before, after = run_transition(store, user_id, lambda p: purchase_upgrade(p, payload.stat))
    logger.info("%s upgraded %s for %d coins", user_id, payload.stat, before.coins - after.coins)
    return {
        "coins": after.coins,
        "spent": before.coins - after.coins,
        "character": after.character.model_dump(),
    }


# ---------- Adventure endpoints ----------

@app.get("/api/profile/{user_id}/map", response_model=dict)
def adventure_map(user_id: str, store=Depends(get_store)):
    profile = load_profile(store, user_id)
    completed = set(profile.completed)
    today = date.today()

    def view(source):
        return {
            **source.model_dump(),
            "unlocked": is_unlocked(profile.level, source.unlock_level),
            "completed": completion_key(source, today) in completed,
        }

    return {
        "level": profile.level,
        "map_position": profile.map_position.model_dump() if profile.map_position else None,
        "checkpoints": [view(c) for c in catalog.CHECKPOINTS],
        "bosses": [view(b) for b in catalog.BOSSES],
        "daily_challenges": [view(d) for d in catalog.DAILY_CHALLENGES],
    }


class CompleteCheckpointRequest(BaseModel):
    user_id: str
    score: int
    total: int


@app.post("/api/checkpoints/{checkpoint_id}/complete", response_model=dict)
def complete_checkpoint(checkpoint_id: str, payload: CompleteCheckpointRequest, store=Depends(get_store)):
    checkpoint = lookup("checkpoint", checkpoint_id)
    try:
        result = grade_quiz(payload.score, payload.total)
    except InvalidAmount as e:
        raise http_error(e)
    before, after = run_transition(store, payload.user_id, lambda p: complete_source(p, checkpoint))
    log_reward(store, payload.user_id, f"Completed {checkpoint.name} ({result.percentage}%)",
               checkpoint.coins, checkpoint.xp, checkpoint)
    return {
        **profile_view(after),
        "quiz": result.model_dump(),
        "coins_awarded": checkpoint.coins,
        "xp_awarded": checkpoint.xp,
        "leveled_up": after.level > before.level,
    }


class UserRequest(BaseModel):
    user_id: str


@app.post("/api/challenges/{challenge_id}/complete", response_model=dict)
def complete_challenge(challenge_id: str, payload: UserRequest, store=Depends(get_store)):
    challenge = lookup("daily_challenge", challenge_id)
    today = date.today()
    before, after = run_transition(store, payload.user_id, lambda p: complete_source(p, challenge, today))
    log_reward(store, payload.user_id, f"Daily challenge {challenge.name} ({today.isoformat()})",
               challenge.coins, challenge.xp, challenge)
    return {
        **profile_view(after),
        "coins_awarded": challenge.coins,
        "xp_awarded": challenge.xp,
        "leveled_up": after.level > before.level,
    }


# ---------- Battle endpoints ----------

@app.post("/api/battle/{boss_id}/start", response_model=BattleState)
def begin_battle(boss_id: str, payload: UserRequest, store=Depends(get_store)):
    boss = lookup("boss", boss_id)
    profile = load_profile(store, payload.user_id)
    try:
        check_access(profile.level, boss, frozenset(profile.completed))
    except ProgressionError as e:
        raise http_error(e)
    return start_battle(boss)


class BattleTurnRequest(BaseModel):
    user_id: str
    player_hp: int
    boss_hp: int


@app.post("/api/battle/{boss_id}/turn", response_model=dict)
def take_turn(boss_id: str, payload: BattleTurnRequest, store=Depends(get_store)):
    boss = lookup("boss", boss_id)
    if not 0 < payload.player_hp <= PLAYER_START_HP or not 0 < payload.boss_hp <= boss.hp:
        raise HTTPException(status_code=422, detail="Battle state out of range")
    state = battle_turn(BattleState(player_hp=payload.player_hp, boss_hp=payload.boss_hp))
    response = {"battle": state.model_dump(), "coins_awarded": 0, "xp_awarded": 0}
    if state.outcome == "victory":
        _, after = run_transition(store, payload.user_id, lambda p: complete_source(p, boss))
        log_reward(store, payload.user_id, f"Defeated {boss.name}", boss.coins, boss.xp, boss)
        response.update(profile_view(after))
        response.update({"coins_awarded": boss.coins, "xp_awarded": boss.xp})
    return response


# ---------- Shop endpoints ----------

@app.post("/api/shop/{item_id}/purchase", response_model=dict)
def purchase(item_id: str, payload: UserRequest, store=Depends(get_store)):
    item = lookup("shop_item", item_id)
    _, after = run_transition(store, payload.user_id, lambda p: purchase_item(p, item))
    logger.info("%s bought %s for %d coins", payload.user_id, item.id, item.price)
    return {"coins": after.coins, "inventory": after.inventory, "item": item.model_dump()}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
