from sqlalchemy import func, select

from pm_assistant.db import models
from pm_assistant.schemas.chat import StyleProfileUpdate, Tone
from pm_assistant.services.style_profiles import apply_profile_patch, get_or_create_profile


async def _profile_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(models.StyleProfile))).scalar_one()


async def test_get_or_create_is_idempotent(db_session, user):
    first = await get_or_create_profile(db_session, user.id, user.tenant_id)
    second = await get_or_create_profile(db_session, user.id, user.tenant_id)

    assert first.id == second.id
    assert (second.tone, second.prefer_bullets, second.include_risks_by_default, second.auto_create_tasks) == (
        "Direct",
        True,
        True,
        False,
    )
    assert await _profile_count(db_session) == 1


async def test_get_or_create_is_per_user(db_session, user, other_user):
    mine = await get_or_create_profile(db_session, user.id, user.tenant_id)
    theirs = await get_or_create_profile(db_session, other_user.id, other_user.tenant_id)

    assert mine.id != theirs.id
    assert await _profile_count(db_session) == 2


async def test_insert_conflict_keeps_existing_row(db_session, user):
    db_session.add(models.StyleProfile(tenant_id=user.tenant_id, user_id=user.id, tone="Soft"))
    await db_session.commit()

    profile = await get_or_create_profile(db_session, user.id, user.tenant_id)

    assert profile.tone == "Soft"
    assert await _profile_count(db_session) == 1


def test_patch_changes_only_given_fields():
    profile = models.StyleProfile(tone="Direct", prefer_bullets=True, include_risks_by_default=True, auto_create_tasks=False)

    changed = apply_profile_patch(profile, StyleProfileUpdate(tone=Tone.technical, auto_create_tasks=True))

    assert sorted(changed) == ["auto_create_tasks", "tone"]
    assert profile.tone == "Technical"
    assert profile.prefer_bullets is True
    assert profile.auto_create_tasks is True
    assert profile.updated_at is not None


def test_empty_patch_changes_nothing():
    profile = models.StyleProfile(tone="Soft")

    assert apply_profile_patch(profile, StyleProfileUpdate()) == []
    assert profile.tone == "Soft"
