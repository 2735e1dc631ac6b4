"""Tests for the NPC lifecycle service."""

from datetime import datetime, timedelta

import pytest

from app.core.exceptions import ExpiredError, NotFoundError, ProviderError, ValidationError
from app.models import NPCRecord
from app.schemas.npc import NPCGenerateRequest, NPCResponse, NPCUpdate
from app.services.npc_service import NPCService
from tests.conftest import ELDA


class Clock:
    """Settable clock for deadline tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 1, 12, 0, 0))


@pytest.fixture
def service(db, fake_client, clock):
    return NPCService(db, client=fake_client, clock=clock)


def _body(**kwargs) -> NPCGenerateRequest:
    data = {"role": "merchant", "storyFit": "quest giver"}
    data.update(kwargs)
    return NPCGenerateRequest.model_validate(data)


# --- generate ---

async def test_generate_persists_record(service, alice, db):
    record = await service.generate(_body(), owner_id=alice.id)

    assert record.id.startswith("npc_")
    assert record.created_by == alice.id
    assert record.is_active is True
    assert record.campaign_id is None
    assert record.deleted_at is None
    assert record.generation_request["role"] == "merchant"
    assert record.generation_request["storyFit"] == "quest giver"
    assert record.generated_npc["name"] == "Elda"
    assert "stats" not in record.generated_npc
    assert record.generated_npc["aiPromptUsed"].startswith("Generate a D&D NPC")
    assert record.generated_npc["aiResponse"]
    assert record.generation_settings == {
        "creativityLevel": "balanced", "settingStyle": "high-fantasy", "tone": "neutral"
    }
    assert db.query(NPCRecord).count() == 1


async def test_generate_trims_role_and_story_fit(service, alice):
    record = await service.generate(_body(role="  innkeeper ", storyFit=" rumor source  "), owner_id=alice.id)
    assert record.role == "innkeeper"
    assert record.generation_request["storyFit"] == "rumor source"


@pytest.mark.parametrize("overrides", [{"role": None}, {"storyFit": "   "}, {"role": ""}])
async def test_generate_requires_role_and_story_fit(service, alice, fake_client, db, overrides):
    with pytest.raises(ValidationError) as exc_info:
        await service.generate(_body(**overrides), owner_id=alice.id)

    assert exc_info.value.public_message == "Role and story fit are required fields"
    assert fake_client.calls == []
    assert db.query(NPCRecord).count() == 0


async def test_generate_unknown_campaign(service, alice, fake_client):
    with pytest.raises(ValidationError):
        await service.generate(_body(campaignId="cmp_missing"), owner_id=alice.id)
    assert fake_client.calls == []


async def test_generate_with_campaign(service, alice, campaign):
    record = await service.generate(_body(campaignId=campaign.id), owner_id=alice.id)
    assert record.campaign_id == campaign.id
    assert record.campaign_name == "Curse of the Spice Road"


async def test_generate_rejects_another_users_campaign(service, bob, campaign, fake_client, db):
    with pytest.raises(ValidationError):
        await service.generate(_body(campaignId=campaign.id), owner_id=bob.id)
    assert fake_client.calls == []
    assert db.query(NPCRecord).count() == 0


async def test_generate_with_stats(service, alice, fake_client):
    record = await service.generate(_body(includeStats=True), owner_id=alice.id)

    assert fake_client.calls[0]["include_stats"] is True
    assert record.has_stats is True
    assert record.generated_npc["stats"]["abilityScores"]["charisma"] == 16


async def test_stats_suppressed_when_not_requested(service, alice, fake_client):
    fake_client.queue_data(dict(ELDA, stats={"abilityScores": {"strength": 10}}))
    record = await service.generate(_body(includeStats=False), owner_id=alice.id)

    assert "stats" not in record.generated_npc
    assert record.has_stats is False


async def test_creativity_sets_temperature(service, alice, fake_client):
    await service.generate(_body(generationSettings={"creativityLevel": "creative"}), owner_id=alice.id)
    assert fake_client.calls[0]["temperature"] == 0.9


async def test_free_text_generation(db, alice, clock):
    from tests.conftest import FakeGenerationClient

    client = FakeGenerationClient(structured_output=False)
    client.queue_text("Name: Bram\nRace: Dwarf\nOccupation: Smith")
    service = NPCService(db, client=client, clock=clock)

    record = await service.generate(_body(role="blacksmith"), owner_id=alice.id)

    assert record.name == "Bram"
    assert record.generated_npc["race"] == "Dwarf"
    assert record.generated_npc["aiResponse"] == "Name: Bram\nRace: Dwarf\nOccupation: Smith"


async def test_provider_error_saves_nothing(service, alice, fake_client, db):
    fake_client.queue_error(ProviderError("boom"))
    with pytest.raises(ProviderError):
        await service.generate(_body(), owner_id=alice.id)
    assert db.query(NPCRecord).count() == 0


# --- reads ---

async def test_owner_isolation(service, alice, bob):
    record = await service.generate(_body(), owner_id=alice.id)

    with pytest.raises(NotFoundError):
        service.get(record.id, bob.id)
    with pytest.raises(NotFoundError):
        service.soft_delete(record.id, bob.id)
    assert service.list_npcs(bob.id) == ([], 0)


async def test_campaign_filter_is_scoped_to_owner(service, alice, bob, campaign, db):
    mine = await service.generate(_body(campaignId=campaign.id), owner_id=alice.id)
    theirs = await service.generate(_body(role="guard"), owner_id=bob.id)
    # Both users now hold an NPC under the same campaign id
    theirs.campaign_id = campaign.id
    db.commit()

    alice_records, _ = service.list_npcs(alice.id, campaign_id=campaign.id)
    bob_records, _ = service.list_npcs(bob.id, campaign_id=campaign.id)

    assert [r.id for r in alice_records] == [mine.id]
    assert [r.id for r in bob_records] == [theirs.id]
    assert [item.id for item in service.list_by_campaign(alice.id, campaign.id)] == [mine.id]
    assert service.search(alice.id, "guard", campaign_id=campaign.id) == ([], 0)


async def test_list_filters_and_paginates(service, alice, campaign, clock):
    for role in ["merchant", "Tavern keeper", "guard captain"]:
        await service.generate(_body(role=role), owner_id=alice.id)
        clock.advance(minutes=1)
    await service.generate(_body(role="spy", campaignId=campaign.id), owner_id=alice.id)

    records, total = service.list_npcs(alice.id, page=1, limit=3)
    assert total == 4
    assert len(records) == 3

    records, total = service.list_npcs(alice.id, role="KEEPER")
    assert [r.role for r in records] == ["Tavern keeper"]

    records, total = service.list_npcs(alice.id, campaign_id=campaign.id)
    assert [r.role for r in records] == ["spy"]


async def test_search_and_summary(service, alice, campaign):
    await service.generate(_body(includeStats=True, campaignId=campaign.id), owner_id=alice.id)
    await service.generate(_body(role="guard"), owner_id=alice.id)

    records, total = service.search(alice.id, "spice")
    assert total == 2  # both generated NPCs are spice merchants

    records, total = service.search(alice.id, "guard")
    assert [r.role for r in records] == ["guard"]

    with pytest.raises(ValidationError):
        service.search(alice.id, "  ")

    assert service.search(alice.id, "_") == ([], 0)
    assert service.search(alice.id, "%") == ([], 0)

    summary = service.summary(alice.id)
    assert summary.total_npcs == 2
    assert summary.npcs_with_stats == 1
    assert summary.npcs_without_stats == 1
    assert {c.role: c.count for c in summary.npcs_by_role} == {"merchant": 1, "guard": 1}
    assert summary.npcs_by_campaign[0].campaign_name == "Curse of the Spice Road"

    roster = service.list_by_campaign(alice.id, campaign.id)
    assert [item.role for item in roster] == ["merchant"]


# --- update / favorite ---

async def test_update_merges_sub_documents(service, alice):
    record = await service.generate(_body(), owner_id=alice.id)
    patch = NPCUpdate.model_validate({
        "generatedNPC": {"name": "Elda the Bold"},
        "generationSettings": {"tone": "dark"},
        "notes": "Owes the party a favor",
    })

    updated = service.update(record.id, alice.id, patch)

    assert updated.name == "Elda the Bold"
    assert updated.generated_npc["race"] == "Human"
    assert updated.generation_settings["tone"] == "dark"
    assert updated.generation_settings["creativityLevel"] == "balanced"
    assert updated.notes == "Owes the party a favor"


async def test_update_rejects_invalid_values(service, alice):
    record = await service.generate(_body(), owner_id=alice.id)
    patch = NPCUpdate.model_validate({"generationRequest": {"role": "  "}})

    with pytest.raises(ValidationError):
        service.update(record.id, alice.id, patch)
    assert service.get(record.id, alice.id).role == "merchant"


@pytest.mark.parametrize("field", ["generationRequest", "generatedNPC", "generationSettings"])
async def test_update_rejects_null_sub_document(service, alice, field):
    record = await service.generate(_body(), owner_id=alice.id)

    with pytest.raises(ValidationError) as exc:
        service.update(record.id, alice.id, NPCUpdate.model_validate({field: None}))

    assert exc.value.public_message == f"{field} cannot be null"
    assert service.get(record.id, alice.id).name == "Elda"


async def test_update_rejects_another_users_campaign(service, alice, bob, campaign):
    record = await service.generate(_body(), owner_id=bob.id)

    with pytest.raises(ValidationError):
        service.update(record.id, bob.id, NPCUpdate.model_validate({"campaignId": campaign.id}))
    assert service.get(record.id, bob.id).campaign_id is None


async def test_toggle_favorite(service, alice):
    record = await service.generate(_body(), owner_id=alice.id)

    assert service.toggle_favorite(record.id, alice.id).is_favorite is True
    assert service.toggle_favorite(record.id, alice.id).is_favorite is False


# --- delete / restore ---

async def test_soft_delete_sets_deadline(service, alice, clock):
    record = await service.generate(_body(), owner_id=alice.id)
    deleted = service.soft_delete(record.id, alice.id)

    assert deleted.is_active is False
    assert deleted.deleted_at == clock.now
    assert deleted.permanent_delete_at == clock.now + timedelta(days=30)
    with pytest.raises(NotFoundError):
        service.get(record.id, alice.id)
    assert service.list_npcs(alice.id) == ([], 0)

    trashed, total = service.list_deleted(alice.id)
    assert [r.id for r in trashed] == [record.id]
    assert trashed[0].days_until_permanent_delete(clock.now) == 30


async def test_soft_delete_then_restore_round_trip(service, alice):
    record = await service.generate(_body(), owner_id=alice.id)
    before = NPCResponse.from_record(record).model_dump()

    service.soft_delete(record.id, alice.id)
    restored = service.restore(record.id, alice.id)
    after = NPCResponse.from_record(restored).model_dump()

    assert restored.is_active is True
    assert restored.deleted_at is None
    assert restored.permanent_delete_at is None
    before.pop("updated_at")
    after.pop("updated_at")
    assert after == before


async def test_restore_just_before_deadline(service, alice, clock):
    record = await service.generate(_body(), owner_id=alice.id)
    service.soft_delete(record.id, alice.id)

    clock.advance(days=30, seconds=-1)
    assert service.restore(record.id, alice.id).is_active is True


async def test_restore_at_deadline_expired(service, alice, clock):
    record = await service.generate(_body(), owner_id=alice.id)
    service.soft_delete(record.id, alice.id)

    clock.advance(days=30)
    with pytest.raises(ExpiredError):
        service.restore(record.id, alice.id)


async def test_restore_active_or_missing_not_found(service, alice):
    record = await service.generate(_body(), owner_id=alice.id)
    with pytest.raises(NotFoundError):
        service.restore(record.id, alice.id)
    with pytest.raises(NotFoundError):
        service.restore("npc_missing", alice.id)


async def test_hard_delete(service, alice, db):
    record = await service.generate(_body(), owner_id=alice.id)
    service.hard_delete(record.id, alice.id)

    assert db.query(NPCRecord).count() == 0
    with pytest.raises(NotFoundError):
        service.hard_delete(record.id, alice.id)


async def test_cleanup_expired_is_idempotent(service, alice, bob, clock, db):
    old = await service.generate(_body(), owner_id=alice.id)
    other = await service.generate(_body(), owner_id=bob.id)
    service.soft_delete(old.id, alice.id)
    service.soft_delete(other.id, bob.id)

    clock.advance(days=10)
    recent = await service.generate(_body(), owner_id=alice.id)
    service.soft_delete(recent.id, alice.id)
    kept = await service.generate(_body(), owner_id=alice.id)

    clock.advance(days=20)
    assert service.cleanup_expired() == 2
    assert service.cleanup_expired() == 0
    assert {r.id for r in db.query(NPCRecord).all()} == {recent.id, kept.id}


# --- regenerate ---

async def test_regenerate_replaces_generated_npc(service, alice, fake_client):
    record = await service.generate(_body(), owner_id=alice.id)
    fake_client.queue_data(dict(ELDA, name="Mirelle"))

    regenerated = await service.regenerate(record.id, alice.id)

    assert regenerated.id == record.id
    assert regenerated.name == "Mirelle"
    assert fake_client.calls[0]["prompt"] == fake_client.calls[1]["prompt"]
