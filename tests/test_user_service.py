import pytest
from builders import build_user_payload, ENTERPRISE_SCHEMA, USER_SCHEMA
from multiscim.exceptions import (
    InvalidValue,
    ResourceAlreadyExists,
    ResourceNotFound,
    TenantContextMissing,
)
from multiscim.models import User
from multiscim.schemas import UserRequest
from multiscim.services import UserService
from multiscim.utils import PaginationParams


@pytest.fixture
def service():
    return UserService()


async def create(service, tenant, rng, **overrides):
    return await service.create_user(str(tenant.id), UserRequest(**build_user_payload(rng, **overrides)))


@pytest.mark.asyncio
async def test_create_user(service, tenant, rng):
    payload = build_user_payload(rng, enterprise=True, id="client-chosen", externalId="ext-1")
    user = await service.create_user(str(tenant.id), UserRequest(**payload))

    assert user.id != "client-chosen"
    assert user.user_name == payload["userName"]
    assert user.external_id == "ext-1"
    assert user.schemas == [USER_SCHEMA, ENTERPRISE_SCHEMA]
    assert user.meta.resource_type == "User"
    assert user.meta.created == user.meta.last_modified
    assert user.meta.location == f"/scim/v2/Users/{user.id}"
    assert user.meta.version.startswith('W/"')

    row = await User.get(id=user.id)
    assert str(row.tenant_id) == str(tenant.id)
    assert row.enterprise["department"] == payload[ENTERPRISE_SCHEMA]["department"]


@pytest.mark.asyncio
async def test_create_requires_user_schema(service, tenant, rng):
    payload = build_user_payload(rng, schemas=["urn:ietf:params:scim:schemas:core:2.0:Group"])
    with pytest.raises(InvalidValue) as exc_info:
        await service.create_user(str(tenant.id), UserRequest(**payload))
    assert exc_info.value.detail == "Missing or invalid 'schemas' property."


@pytest.mark.asyncio
async def test_create_requires_user_name(service, tenant, rng):
    payload = build_user_payload(rng)
    del payload["userName"]
    with pytest.raises(InvalidValue) as exc_info:
        await service.create_user(str(tenant.id), UserRequest(**payload))
    assert exc_info.value.detail == "userName is required"


@pytest.mark.asyncio
async def test_create_requires_tenant(service, rng):
    with pytest.raises(TenantContextMissing):
        await service.create_user("", UserRequest(**build_user_payload(rng)))


@pytest.mark.asyncio
async def test_duplicate_user_name_is_case_insensitive(service, tenant, rng):
    await create(service, tenant, rng, userName="bjensen@example.com")
    with pytest.raises(ResourceAlreadyExists) as exc_info:
        await create(service, tenant, rng, userName="BJensen@Example.com")
    assert exc_info.value.status_code == 409
    assert exc_info.value.scim_type == "uniqueness"


@pytest.mark.asyncio
async def test_duplicate_external_id(service, tenant, rng):
    await create(service, tenant, rng, externalId="ext-1")
    with pytest.raises(ResourceAlreadyExists) as exc_info:
        await create(service, tenant, rng, externalId="ext-1")
    assert "externalId" in exc_info.value.detail


@pytest.mark.asyncio
async def test_same_user_name_in_different_tenants(service, tenant, other_tenant, rng):
    await create(service, tenant, rng, userName="bjensen@example.com")
    other = await create(service, other_tenant, rng, userName="bjensen@example.com")
    assert other.user_name == "bjensen@example.com"


@pytest.mark.asyncio
async def test_get_user_is_tenant_scoped(service, tenant, other_tenant, rng):
    user = await create(service, tenant, rng)

    fetched = await service.get_user(str(tenant.id), user.id)
    assert fetched.user_name == user.user_name
    assert fetched.meta.version == user.meta.version
    assert [e.value for e in fetched.emails] == [e.value for e in user.emails]

    with pytest.raises(ResourceNotFound):
        await service.get_user(str(other_tenant.id), user.id)
    with pytest.raises(ResourceNotFound):
        await service.get_user(str(tenant.id), "does-not-exist")


@pytest.mark.asyncio
async def test_delete_user_twice(service, tenant, rng):
    user = await create(service, tenant, rng)

    await service.delete_user(str(tenant.id), user.id)
    with pytest.raises(ResourceNotFound):
        await service.delete_user(str(tenant.id), user.id)


@pytest.mark.asyncio
async def test_delete_from_other_tenant(service, tenant, other_tenant, rng):
    user = await create(service, tenant, rng)

    with pytest.raises(ResourceNotFound):
        await service.delete_user(str(other_tenant.id), user.id)
    assert await User.filter(id=user.id).exists()


@pytest.mark.asyncio
async def test_replace_user(service, tenant, rng):
    user = await create(service, tenant, rng, title="Tour Guide", groups=[{"value": "g1", "display": "Guides"}])

    replacement = build_user_payload(rng, userName=user.user_name, displayName="Babs")
    replaced = await service.replace_user(str(tenant.id), user.id, UserRequest(**replacement))

    assert replaced.id == user.id
    assert replaced.display_name == "Babs"
    assert replaced.title is None
    assert [g.value for g in replaced.groups] == ["g1"]
    assert replaced.meta.created == user.meta.created
    assert replaced.meta.last_modified >= user.meta.last_modified
    assert replaced.meta.version != user.meta.version


@pytest.mark.asyncio
async def test_replace_conflicting_user_name(service, tenant, rng):
    first = await create(service, tenant, rng)
    second = await create(service, tenant, rng)

    payload = build_user_payload(rng, userName=first.user_name)
    with pytest.raises(ResourceAlreadyExists):
        await service.replace_user(str(tenant.id), second.id, UserRequest(**payload))


@pytest.mark.asyncio
async def test_replace_in_other_tenant(service, tenant, other_tenant, rng):
    user = await create(service, tenant, rng)
    with pytest.raises(ResourceNotFound):
        await service.replace_user(str(other_tenant.id), user.id, UserRequest(**build_user_payload(rng)))


@pytest.mark.asyncio
async def test_patch_user_persists(service, tenant, rng):
    user = await create(service, tenant, rng, active=True)

    patched = await service.patch_user(str(tenant.id), user.id, [
        {"op": "replace", "path": "active", "value": "False"},
        {"op": "add", "path": f"{ENTERPRISE_SCHEMA}:manager", "value": "mgr-1"},
    ])

    assert patched.active is False
    assert patched.enterprise_user.manager.ref == "../Users/mgr-1"
    assert ENTERPRISE_SCHEMA in patched.schemas

    reloaded = await service.get_user(str(tenant.id), user.id)
    assert reloaded.active is False
    assert reloaded.enterprise_user.manager.value == "mgr-1"
    assert reloaded.meta.version == patched.meta.version


@pytest.mark.asyncio
async def test_failed_patch_persists_nothing(service, tenant, rng):
    user = await create(service, tenant, rng, title="Tour Guide")

    with pytest.raises(InvalidValue):
        await service.patch_user(str(tenant.id), user.id, [
            {"op": "replace", "path": "title", "value": "Lead"},
            {"op": "replace", "path": "userName", "value": ""},
        ])

    reloaded = await service.get_user(str(tenant.id), user.id)
    assert reloaded.title == "Tour Guide"


@pytest.mark.asyncio
async def test_patch_to_duplicate_external_id(service, tenant, rng):
    await create(service, tenant, rng, externalId="ext-1")
    user = await create(service, tenant, rng, externalId="ext-2")

    with pytest.raises(ResourceAlreadyExists):
        await service.patch_user(str(tenant.id), user.id, [{"op": "replace", "path": "externalId", "value": "ext-1"}])


@pytest.mark.asyncio
async def test_manager_validation(tenant, rng):
    service = UserService(validate_manager_reference_exists=True)
    manager = await create(service, tenant, rng)

    payload = build_user_payload(rng, enterprise=True)
    payload[ENTERPRISE_SCHEMA]["manager"] = {"value": manager.id}
    report = await service.create_user(str(tenant.id), UserRequest(**payload))
    assert report.enterprise_user.manager.ref == f"../Users/{manager.id}"

    with pytest.raises(InvalidValue):
        await service.patch_user(str(tenant.id), report.id, [
            {"op": "replace", "path": f"{ENTERPRISE_SCHEMA}:manager.value", "value": "nobody"},
        ])


@pytest.mark.asyncio
async def test_manager_validation_is_tenant_scoped(tenant, other_tenant, rng):
    service = UserService(validate_manager_reference_exists=True)
    outsider = await create(service, other_tenant, rng)

    payload = build_user_payload(rng, enterprise=True)
    payload[ENTERPRISE_SCHEMA]["manager"] = outsider.id
    with pytest.raises(InvalidValue):
        await service.create_user(str(tenant.id), UserRequest(**payload))


@pytest.mark.asyncio
async def test_unknown_manager_allowed_by_default(service, tenant, rng):
    payload = build_user_payload(rng, enterprise=True)
    payload[ENTERPRISE_SCHEMA]["manager"] = "not-a-user"
    user = await service.create_user(str(tenant.id), UserRequest(**payload))
    assert user.enterprise_user.manager.value == "not-a-user"


class TestListUsers:
    @pytest.mark.asyncio
    async def test_pagination_window(self, service, tenant, rng):
        created = [await create(service, tenant, rng) for _ in range(15)]

        users, total = await service.list_users(str(tenant.id), PaginationParams(start_index=6, count=5))

        assert total == 15
        assert [u.id for u in users] == [u.id for u in created[5:10]]

    @pytest.mark.asyncio
    async def test_window_past_the_end(self, service, tenant, rng):
        for _ in range(3):
            await create(service, tenant, rng)

        users, total = await service.list_users(str(tenant.id), PaginationParams(start_index=10, count=5))

        assert total == 3
        assert users == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start_index, count, message", [
        (0, 10, "startIndex must be greater than 0"),
        (-1, 10, "startIndex must be greater than 0"),
        (1, 0, "count must be greater than 0"),
        (1, -5, "count must be greater than 0"),
    ])
    async def test_invalid_bounds(self, service, tenant, start_index, count, message):
        with pytest.raises(InvalidValue) as exc_info:
            await service.list_users(str(tenant.id), PaginationParams(start_index=start_index, count=count))
        assert exc_info.value.detail == message

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped(self, service, tenant, other_tenant, rng):
        await create(service, tenant, rng)
        await create(service, other_tenant, rng)
        await create(service, other_tenant, rng)

        users, total = await service.list_users(str(tenant.id), PaginationParams())
        assert total == 1
        assert len(users) == 1

    @pytest.mark.asyncio
    async def test_filter_by_user_name(self, service, tenant, rng):
        target = await create(service, tenant, rng, userName="bjensen@example.com")
        await create(service, tenant, rng)

        users, total = await service.list_users(
            str(tenant.id), PaginationParams(), filter_query='userName eq "BJENSEN@example.com"'
        )
        assert total == 1
        assert users[0].id == target.id

    @pytest.mark.asyncio
    async def test_filter_by_external_id(self, service, tenant, rng):
        target = await create(service, tenant, rng, externalId="ext-42")
        await create(service, tenant, rng, externalId="ext-43")

        users, total = await service.list_users(str(tenant.id), PaginationParams(), filter_query='externalId eq "ext-42"')
        assert total == 1
        assert users[0].id == target.id

    @pytest.mark.asyncio
    async def test_unsupported_filter_returns_everything(self, service, tenant, rng):
        for _ in range(2):
            await create(service, tenant, rng)

        _, total = await service.list_users(str(tenant.id), PaginationParams(), filter_query='title co "Guide"')
        assert total == 2

    @pytest.mark.asyncio
    async def test_sort_by_user_name_descending(self, service, tenant, rng):
        for name in ("bravo", "alpha", "charlie"):
            await create(service, tenant, rng, userName=name)

        users, _ = await service.list_users(
            str(tenant.id), PaginationParams(), sort_by="userName", sort_order="DESCENDING"
        )
        assert [u.user_name for u in users] == ["charlie", "bravo", "alpha"]

    @pytest.mark.asyncio
    async def test_invalid_sort_order(self, service, tenant):
        with pytest.raises(InvalidValue):
            await service.list_users(str(tenant.id), PaginationParams(), sort_order="sideways")
