# tests/test_farms.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select

from farm_access.auth.permissions import DEFAULT_ROLE_BINDINGS
from farm_access.core import farms
from farm_access.core.errors import ForbiddenError, NotFoundError
from farm_access.core.invitations import create_invitation
from farm_access.core.roles import FarmRole
from farm_access.crud import catalog as catalog_crud
from farm_access.crud import farm as farm_crud
from farm_access.models.equipment import Equipment
from farm_access.models.farm import Farm
from farm_access.models.farm_invitation import FarmInvitation
from farm_access.models.farm_member import FarmMember
from farm_access.models.farm_role_permission import FarmRolePermission
from farm_access.models.field import Field
from farm_access.models.role import Role
from farm_access.models.season import Season
from farm_access.models.task import Task, TaskParticipant

from factories import add_membership, auth_headers, make_farm, make_user, role_id


async def count(db, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return int((await db.execute(stmt)).scalar() or 0)


async def populate(db, farm: Farm, worker) -> None:
    """One of everything that hangs off a farm."""
    field = Field(farm_id=farm.id, name="North Field", crop="wheat")
    db.add(field)
    db.add(Equipment(farm_id=farm.id, name="Tractor"))
    await db.flush()

    task = Task(field_id=field.id, title="Plough")
    db.add(task)
    await db.flush()
    db.add(TaskParticipant(task_id=task.id, user_id=worker.id))
    await db.commit()


def test_default_seasons_follow_agricultural_year():
    seasons = farms.default_seasons(today=date(2024, 3, 15))

    assert seasons[0] == ("2023-2024", date(2023, 9, 1), date(2024, 8, 31))
    assert [name for name, _, _ in seasons] == ["2023-2024", "2024-2025", "2025-2026"]
    assert farms.default_seasons(today=date(2024, 9, 1))[0][0] == "2024-2025"


@pytest.mark.asyncio
async def test_create_farm_sets_up_owner_bindings_and_seasons(db):
    owner = await make_user(db, "owner@example.com")

    farm = await farms.create_farm(db, owner_id=owner.id, name="  Green Acres ")

    assert farm.name == "Green Acres"
    membership = (
        await db.execute(select(FarmMember).where(FarmMember.farm_id == farm.id))
    ).scalar_one()
    assert membership.user_id == owner.id
    assert membership.role_id == await role_id(db, FarmRole.OWNER.value)

    expected_bindings = sum(len(perms) for perms in DEFAULT_ROLE_BINDINGS.values())
    assert await count(db, FarmRolePermission, FarmRolePermission.farm_id == farm.id) == expected_bindings
    assert await count(db, Season, Season.farm_id == farm.id) == farms.DEFAULT_SEASON_COUNT


@pytest.mark.asyncio
async def test_fourth_farm_exceeds_quota(db):
    owner = await make_user(db, "owner@example.com")
    for i in range(3):
        await farms.create_farm(db, owner_id=owner.id, name=f"Farm {i}")

    with pytest.raises(ForbiddenError) as exc:
        await farms.create_farm(db, owner_id=owner.id, name="New Farm")

    assert exc.value.code == "farm_quota_exceeded"
    assert exc.value.extra == {"limit": 3, "owned": 3}
    assert await count(db, Farm, Farm.owner_id == owner.id) == 3


@pytest.mark.asyncio
async def test_create_farm_without_owner_role_writes_nothing(db):
    owner = await make_user(db, "owner@example.com")
    owner_role = (await db.execute(select(Role).where(Role.name == FarmRole.OWNER.value))).scalar_one()
    await db.delete(owner_role)
    await db.commit()

    with pytest.raises(ForbiddenError) as exc:
        await farms.create_farm(db, owner_id=owner.id, name="Green Acres")

    assert exc.value.code == "catalog_missing_owner_role"
    assert await count(db, Farm) == 0


@pytest.mark.asyncio
async def test_rename_farm_rules(db):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")
    farm = await make_farm(db, owner)
    await add_membership(db, worker, farm, FarmRole.WORKER.value)

    with pytest.raises(NotFoundError):
        await farms.rename_farm(db, farm_id=9999, new_name="Whatever", requester_id=owner.id)

    with pytest.raises(ForbiddenError) as exc:
        await farms.rename_farm(db, farm_id=farm.id, new_name="Worker Farm", requester_id=worker.id)
    assert exc.value.code == "not_owner"

    with pytest.raises(ForbiddenError) as exc:
        await farms.rename_farm(db, farm_id=farm.id, new_name=" ab ", requester_id=owner.id)
    assert exc.value.code == "farm_name_too_short"

    renamed = await farms.rename_farm(db, farm_id=farm.id, new_name="Blue Hills", requester_id=owner.id)
    assert renamed.name == "Blue Hills"


@pytest.mark.asyncio
async def test_farm_details_counts(db):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")
    outsider = await make_user(db, "outsider@example.com")
    farm = await make_farm(db, owner)
    await add_membership(db, worker, farm, FarmRole.WORKER.value)
    await populate(db, farm, worker)

    details = await farms.get_farm_details(db, farm_id=farm.id, requester_id=worker.id)

    assert (details.members_count, details.fields_count, details.equipment_count, details.tasks_count) == (
        2,
        1,
        1,
        1,
    )

    with pytest.raises(ForbiddenError):
        await farms.get_farm_details(db, farm_id=farm.id, requester_id=outsider.id)
    with pytest.raises(NotFoundError):
        await farms.get_farm_details(db, farm_id=9999, requester_id=owner.id)


@pytest.mark.asyncio
async def test_delete_farm_removes_everything_it_owns(db):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")
    farm = await make_farm(db, owner, "Doomed Farm")
    keep = await make_farm(db, owner, "Kept Farm")
    farm_id, keep_id, owner_id = farm.id, keep.id, owner.id
    await add_membership(db, worker, farm, FarmRole.WORKER.value)
    await populate(db, farm, worker)
    await populate(db, keep, worker)
    await create_invitation(
        db, farm_id=farm_id, email="later@example.com", role_id=await role_id(db, FarmRole.WORKER.value)
    )

    await farms.delete_farm(db, farm_id=farm_id, requester_id=owner_id)

    assert await count(db, Farm, Farm.id == farm_id) == 0
    assert await count(db, FarmMember, FarmMember.farm_id == farm_id) == 0
    assert await count(db, FarmRolePermission, FarmRolePermission.farm_id == farm_id) == 0
    assert await count(db, FarmInvitation, FarmInvitation.farm_id == farm_id) == 0
    assert await count(db, Season, Season.farm_id == farm_id) == 0
    assert await count(db, Equipment, Equipment.farm_id == farm_id) == 0
    assert await count(db, Field, Field.farm_id == farm_id) == 0
    # Only the kept farm's task tree remains.
    assert await count(db, Task) == 1
    assert await count(db, TaskParticipant) == 1

    details = await farms.get_farm_details(db, farm_id=keep_id, requester_id=owner_id)
    assert details.fields_count == 1
    assert details.tasks_count == 1


@pytest.mark.asyncio
async def test_only_owner_can_delete_farm(db):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")
    farm = await make_farm(db, owner)
    await add_membership(db, worker, farm, FarmRole.WORKER.value)

    with pytest.raises(ForbiddenError) as exc:
        await farms.delete_farm(db, farm_id=farm.id, requester_id=worker.id)
    assert exc.value.code == "not_owner"

    with pytest.raises(NotFoundError):
        await farms.delete_farm(db, farm_id=9999, requester_id=owner.id)

    assert await count(db, Farm, Farm.id == farm.id) == 1


@pytest.mark.asyncio
async def test_create_farm_locks_owner_before_counting(db, monkeypatch):
    owner = await make_user(db, "owner@example.com")
    calls = []
    real_get_user = catalog_crud.get_user
    real_count = farm_crud.count_owned_farms

    async def _get_user(db_, user_id, *, for_update=False):
        calls.append(("get_user", for_update))
        return await real_get_user(db_, user_id, for_update=for_update)

    async def _count_owned_farms(db_, owner_id):
        calls.append(("count", None))
        return await real_count(db_, owner_id)

    monkeypatch.setattr(catalog_crud, "get_user", _get_user)
    monkeypatch.setattr(farm_crud, "count_owned_farms", _count_owned_farms)

    await farms.create_farm(db, owner_id=owner.id, name="Green Acres")

    assert calls[:2] == [("get_user", True), ("count", None)]


@pytest.mark.asyncio
async def test_create_farm_for_unknown_owner(db):
    with pytest.raises(NotFoundError):
        await farms.create_farm(db, owner_id=9999, name="Green Acres")

    assert await count(db, Farm) == 0


@pytest.mark.asyncio
async def test_create_farm_rolls_back_when_bindings_fail(db, monkeypatch):
    owner = await make_user(db, "owner@example.com")
    owner_id = owner.id

    async def _broken_bindings(db_, farm_id, bindings):
        raise RuntimeError("bindings unavailable")

    monkeypatch.setattr(farms, "add_default_bindings", _broken_bindings)

    with pytest.raises(RuntimeError):
        await farms.create_farm(db, owner_id=owner_id, name="Green Acres")

    assert await count(db, Farm) == 0
    assert await count(db, FarmMember) == 0
    assert await count(db, Season) == 0


@pytest.mark.asyncio
async def test_delete_farm_rolls_back_when_a_step_fails(db, monkeypatch):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")
    farm = await make_farm(db, owner)
    await add_membership(db, worker, farm, FarmRole.WORKER.value)
    await populate(db, farm, worker)
    farm_id, owner_id = farm.id, owner.id

    real_execute = db.execute

    async def _fail_on_members(stmt, *args, **kwargs):
        if getattr(stmt, "table", None) is FarmMember.__table__:
            raise RuntimeError("connection lost")
        return await real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(db, "execute", _fail_on_members)

    with pytest.raises(RuntimeError):
        await farms.delete_farm(db, farm_id=farm_id, requester_id=owner_id)

    monkeypatch.undo()
    # Tasks and fields were deleted before the failing step; the rollback restores them.
    assert await count(db, Farm, Farm.id == farm_id) == 1
    assert await count(db, Field, Field.farm_id == farm_id) == 1
    assert await count(db, Task) == 1
    assert await count(db, TaskParticipant) == 1
    assert await count(db, FarmMember, FarmMember.farm_id == farm_id) == 2


# ---------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_farm_lifecycle_over_http(client, db):
    owner = await make_user(db, "owner@example.com")
    worker = await make_user(db, "worker@example.com")

    r = await client.post("/api/v1/farms", json={"name": "Green   Acres"}, headers=auth_headers(owner))
    assert r.status_code == 201, r.text
    farm_id = r.json()["id"]
    assert r.json()["name"] == "Green Acres"
    assert r.json()["owner_id"] == owner.id

    farm = await db.get(Farm, farm_id)
    await add_membership(db, worker, farm, FarmRole.WORKER.value)

    r = await client.get("/api/v1/farms", headers=auth_headers(worker))
    assert r.status_code == 200
    assert [(f["farm_id"], f["is_owner"]) for f in r.json()] == [(farm_id, False)]

    r = await client.get(f"/api/v1/farms/{farm_id}", headers=auth_headers(worker))
    assert r.status_code == 200
    assert r.json()["members_count"] == 2

    r = await client.patch(f"/api/v1/farms/{farm_id}", json={"name": "Hi"}, headers=auth_headers(owner))
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "farm_name_too_short"

    r = await client.patch(f"/api/v1/farms/{farm_id}", json={"name": "Blue Hills"}, headers=auth_headers(owner))
    assert r.status_code == 200
    assert r.json()["name"] == "Blue Hills"

    r = await client.delete(f"/api/v1/farms/leave/{farm_id}", headers=auth_headers(owner))
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "owner_must_delete"

    r = await client.delete(f"/api/v1/farms/leave/{farm_id}", headers=auth_headers(worker))
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = await client.delete(f"/api/v1/farms/{farm_id}", headers=auth_headers(worker))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/farms/{farm_id}", headers=auth_headers(owner))
    assert r.status_code == 204

    r = await client.get(f"/api/v1/farms/{farm_id}", headers=auth_headers(owner))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_quota_over_http(client, db):
    owner = await make_user(db, "owner@example.com")
    for i in range(3):
        await make_farm(db, owner, f"Farm {i}")

    r = await client.post("/api/v1/farms", json={"name": "New Farm"}, headers=auth_headers(owner))

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "farm_quota_exceeded"
    assert r.json()["detail"]["limit"] == 3
