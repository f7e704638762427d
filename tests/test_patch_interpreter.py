"""
PATCH semantics over in-memory resources (RFC 7644 Section 3.5.2).
"""
from datetime import datetime, timezone
import pytest
from multiscim.exceptions import (
    InvalidPatch,
    InvalidValue,
    UnsupportedFilterAttribute,
    UnsupportedOperation,
    UnsupportedPath,
)
from multiscim.schemas import GroupResponse, Meta, ResourceType, UserResponse
from multiscim.services.patch_interpreter import GroupPatchInterpreter, UserPatchInterpreter

ENTERPRISE = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"
CORE_USER = "urn:ietf:params:scim:schemas:core:2.0:User"


def make_meta(resource_type: ResourceType) -> Meta:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Meta(resource_type=resource_type, created=now, last_modified=now)


def make_user(**attributes) -> UserResponse:
    attributes.setdefault("user_name", "bjensen@example.com")
    return UserResponse(id="2819c223", meta=make_meta(ResourceType.USER), **attributes)


def make_group(member_ids=("u1", "u2"), **attributes) -> GroupResponse:
    attributes.setdefault("display_name", "Tour Guides")
    return GroupResponse(
        id="e9e30dba",
        members=[{"value": member_id, "display": member_id.upper()} for member_id in member_ids],
        meta=make_meta(ResourceType.GROUP),
        **attributes,
    )


@pytest.fixture
def users():
    return UserPatchInterpreter()


@pytest.fixture
def groups():
    return GroupPatchInterpreter()


class TestGroupMembers:
    def test_remove_member_by_value_filter(self, groups):
        group = make_group(["u1", "u2"])
        groups.apply(group, {"op": "remove", "path": 'members[value eq "u1"]'})
        assert [m.value for m in group.members] == ["u2"]

    def test_remove_member_filter_matching_nothing_is_a_no_op(self, groups):
        group = make_group(["u1", "u2"])
        groups.apply(group, {"op": "remove", "path": 'members[value eq "u9"]'})
        assert [m.value for m in group.members] == ["u1", "u2"]

    def test_add_members_skips_existing_values(self, groups):
        group = make_group(["u1"])
        groups.apply(group, {
            "op": "add",
            "path": "members",
            "value": [{"value": "u1"}, {"value": "u3", "display": "Three"}],
        })
        assert [m.value for m in group.members] == ["u1", "u3"]
        assert group.members[1].display == "Three"

    def test_add_single_member_object(self, groups):
        group = make_group([])
        groups.apply(group, {"op": "add", "path": "members", "value": {"value": "u7"}})
        assert [m.value for m in group.members] == ["u7"]

    def test_replace_members_overwrites_list(self, groups):
        group = make_group(["u1", "u2"])
        groups.apply(group, {"op": "replace", "path": "members", "value": [{"value": "u5"}]})
        assert [m.value for m in group.members] == ["u5"]

    def test_remove_all_members(self, groups):
        group = make_group(["u1", "u2"])
        groups.apply(group, {"op": "remove", "path": "members"})
        assert group.members is None

    def test_replace_member_display_through_filter(self, groups):
        group = make_group(["u1", "u2"])
        groups.apply(group, {"op": "replace", "path": 'members[value eq "u2"].display', "value": "Mandy"})
        assert group.members[0].display == "U1"
        assert group.members[1].display == "Mandy"

    def test_member_type_filter_is_rejected(self, groups):
        group = make_group()
        with pytest.raises(UnsupportedFilterAttribute) as exc_info:
            groups.apply(group, {"op": "replace", "path": 'members[type eq "x"].value', "value": "y"})
        assert exc_info.value.scim_type == "invalidFilter"
        assert "RFC 7643 Section 4.2" in exc_info.value.detail

    def test_add_with_member_filter_is_rejected(self, groups):
        with pytest.raises(UnsupportedPath):
            groups.apply(make_group(), {"op": "add", "path": 'members[value eq "u1"]', "value": {"display": "x"}})

    def test_member_value_cannot_be_removed(self, groups):
        with pytest.raises(InvalidPatch) as exc_info:
            groups.apply(make_group(), {"op": "remove", "path": 'members[value eq "u1"].value'})
        assert exc_info.value.scim_type == "mutability"


class TestGroupAttributes:
    def test_replace_display_name(self, groups):
        group = make_group()
        groups.apply(group, {"op": "replace", "path": "displayName", "value": "Night Shift"})
        assert group.display_name == "Night Shift"

    def test_display_name_cannot_be_blank(self, groups):
        with pytest.raises(InvalidValue):
            groups.apply(make_group(), {"op": "replace", "path": "displayName", "value": "  "})

    def test_display_name_cannot_be_removed(self, groups):
        with pytest.raises(InvalidPatch):
            groups.apply(make_group(), {"op": "remove", "path": "displayName"})

    def test_pathless_replace(self, groups):
        group = make_group()
        groups.apply(group, {"op": "replace", "value": {"id": "hijack", "displayName": "Renamed", "externalId": "ext-9"}})
        assert group.id == "e9e30dba"
        assert group.display_name == "Renamed"
        assert group.external_id == "ext-9"


class TestUserAttributes:
    def test_replace_role_display_through_filter(self, users):
        user = make_user(roles=[{"value": "admin"}, {"value": "auditor", "display": "Auditor"}])
        users.apply(user, {"op": "replace", "path": 'roles[value eq "admin"].display', "value": "Administrator"})
        assert user.roles[0].display == "Administrator"
        assert user.roles[1].display == "Auditor"

    def test_replace_primary_flag_parses_boolean(self, users):
        user = make_user(emails=[{"value": "a@example.com"}, {"value": "b@example.com"}])
        users.apply(user, {"op": "replace", "path": 'emails[value eq "b@example.com"].primary', "value": "True"})
        assert user.emails[1].primary is True
        assert user.emails[0].primary is None

    def test_filter_on_email_type(self, users):
        user = make_user(emails=[{"value": "a@example.com", "type": "work"}, {"value": "b@example.com", "type": "home"}])
        users.apply(user, {"op": "replace", "path": 'emails[type eq "work"].value', "value": "new@example.com"})
        assert [e.value for e in user.emails] == ["new@example.com", "b@example.com"]

    def test_groups_are_patchable(self, users):
        user = make_user(groups=[{"value": "g1", "display": "Guides"}])
        users.apply(user, {"op": "add", "path": "groups", "value": {"value": "g2"}})
        assert [(g.value, g.type) for g in user.groups] == [("g1", "direct"), ("g2", "direct")]

        users.apply(user, {"op": "remove", "path": 'groups[value eq "g1"]'})
        assert [g.value for g in user.groups] == ["g2"]

    def test_add_through_filter_creates_missing_element(self, users):
        user = make_user()
        users.apply(user, {"op": "add", "path": 'emails[type eq "work"].value', "value": "B@Example.com"})
        assert [(e.type, e.value) for e in user.emails] == [("work", "b@example.com")]

    def test_add_through_filter_updates_existing_match(self, users):
        user = make_user(emails=[{"value": "a@example.com", "type": "work"}])
        users.apply(user, {"op": "add", "path": 'emails[type eq "work"].value', "value": "b@example.com"})
        assert [e.value for e in user.emails] == ["b@example.com"]

    def test_add_through_filter_without_target_merges_value(self, users):
        user = make_user(phone_numbers=[{"value": "555-0100", "type": "home"}])
        users.apply(user, {"op": "add", "path": 'phoneNumbers[type eq "mobile"]', "value": {"value": "555-0199"}})
        assert [(p.type, p.value) for p in user.phone_numbers] == [("home", "555-0100"), ("mobile", "555-0199")]

    def test_replace_through_filter_matching_nothing_is_a_no_op(self, users):
        user = make_user()
        users.apply(user, {"op": "replace", "path": 'emails[type eq "work"].value', "value": "b@example.com"})
        assert user.emails is None

    def test_filtered_value_is_validated(self, users):
        user = make_user(emails=[{"value": "a@example.com", "type": "work"}])
        with pytest.raises(InvalidValue):
            users.apply(user, {"op": "replace", "path": 'emails[type eq "work"].value', "value": "not-an-email"})

    @pytest.mark.parametrize("value, expected", [("False", False), (False, False), ("true", True), (0, False)])
    def test_active_accepts_boolean_strings(self, users, value, expected):
        user = make_user(active=not expected)
        users.apply(user, {"op": "replace", "path": "active", "value": value})
        assert user.active is expected

    def test_unparseable_active_leaves_value_unchanged(self, users):
        user = make_user(active=True)
        users.apply(user, {"op": "replace", "path": "active", "value": "sometimes"})
        assert user.active is True

    def test_replace_name_sub_attribute(self, users):
        user = make_user(name={"givenName": "Barbara", "familyName": "Jensen"})
        users.apply(user, {"op": "replace", "path": "name.givenName", "value": "Babs"})
        assert user.name.given_name == "Babs"
        assert user.name.family_name == "Jensen"

    def test_add_name_sub_attribute_creates_name(self, users):
        user = make_user()
        users.apply(user, {"op": "add", "path": "name.familyName", "value": "Jensen"})
        assert user.name.family_name == "Jensen"

    def test_remove_simple_attribute(self, users):
        user = make_user(title="Tour Guide")
        users.apply(user, {"op": "remove", "path": "title"})
        assert user.title is None

    def test_user_name_cannot_be_removed(self, users):
        with pytest.raises(InvalidPatch) as exc_info:
            users.apply(make_user(), {"op": "remove", "path": "userName"})
        assert exc_info.value.scim_type == "mutability"

    def test_read_only_attribute(self, users):
        with pytest.raises(InvalidPatch):
            users.apply(make_user(), {"op": "replace", "path": "id", "value": "other"})

    def test_unknown_attribute(self, users):
        with pytest.raises(UnsupportedPath):
            users.apply(make_user(), {"op": "replace", "path": "shoeSize", "value": "42"})

    def test_core_schema_prefixed_path(self, users):
        user = make_user()
        users.apply(user, {"op": "replace", "path": f"{CORE_USER}:displayName", "value": "Babs"})
        assert user.display_name == "Babs"

    def test_pathless_replace_with_mixed_keys(self, users):
        user = make_user(active=True)
        users.apply(user, {
            "op": "replace",
            "value": {
                "active": "False",
                "displayName": "Babs Jensen",
                "password": "ignored",
                f"{ENTERPRISE}:department": "Tour Operations",
            },
        })
        assert user.active is False
        assert user.display_name == "Babs Jensen"
        assert user.enterprise_user.department == "Tour Operations"
        assert ENTERPRISE in user.schemas

    def test_pathless_value_as_json_string(self, users):
        user = make_user()
        users.apply(user, {"op": "add", "value": '{"title": "Manager"}'})
        assert user.title == "Manager"


class TestEnterpriseExtension:
    def test_set_manager_from_bare_id(self, users):
        user = make_user()
        users.apply(user, {"op": "replace", "path": f"{ENTERPRISE}:manager", "value": "mgr-1"})
        assert user.enterprise_user.manager.value == "mgr-1"
        assert user.schemas == [CORE_USER, ENTERPRISE]

    def test_set_manager_value_sub_attribute(self, users):
        user = make_user()
        users.apply(user, {"op": "add", "path": f"{ENTERPRISE}:manager.value", "value": "mgr-2"})
        assert user.enterprise_user.manager.value == "mgr-2"

    def test_removing_last_extension_attribute_drops_schema(self, users):
        user = make_user(enterprise_user={"department": "Finance"})
        assert ENTERPRISE in user.schemas
        users.apply(user, {"op": "remove", "path": f"{ENTERPRISE}:department"})
        assert user.enterprise_user is None
        assert user.schemas == [CORE_USER]

    def test_replace_whole_extension_merges(self, users):
        user = make_user(enterprise_user={"department": "Finance"})
        users.apply(user, {"op": "replace", "path": ENTERPRISE, "value": {"employeeNumber": "701984"}})
        assert user.enterprise_user.department == "Finance"
        assert user.enterprise_user.employee_number == "701984"

    def test_unknown_extension_attribute(self, users):
        with pytest.raises(UnsupportedPath):
            users.apply(make_user(), {"op": "replace", "path": f"{ENTERPRISE}:shoeSize", "value": "42"})

    def test_unknown_schema(self, users):
        with pytest.raises(UnsupportedPath):
            users.apply(make_user(), {"op": "replace", "path": "urn:example:custom:1.0:Widget:color", "value": "red"})


class TestOperationHandling:
    def test_op_is_case_insensitive(self, users):
        user = make_user()
        users.apply(user, {"op": "Replace", "path": "title", "value": "Lead"})
        assert user.title == "Lead"

    def test_unsupported_op(self, users):
        with pytest.raises(UnsupportedOperation) as exc_info:
            users.apply(make_user(), {"op": "move", "path": "title", "value": "x"})
        assert exc_info.value.scim_type == "invalidSyntax"

    def test_remove_requires_path(self, users):
        with pytest.raises(InvalidPatch) as exc_info:
            users.apply(make_user(), {"op": "remove"})
        assert exc_info.value.scim_type == "noTarget"

    def test_error_names_failing_operation(self, users):
        user = make_user()
        with pytest.raises(UnsupportedPath) as exc_info:
            users.apply_all(user, [
                {"op": "replace", "path": "title", "value": "Lead"},
                {"op": "replace", "path": "shoeSize", "value": "42"},
            ])
        assert exc_info.value.detail.startswith("Operation 2: ")

    def test_operations_apply_in_order(self, groups):
        group = make_group(["u1"])
        groups.apply_all(group, [
            {"op": "add", "path": "members", "value": [{"value": "u2"}]},
            {"op": "remove", "path": 'members[value eq "u1"]'},
            {"op": "replace", "path": 'members[value eq "u2"].display', "value": "Two"},
        ])
        assert [(m.value, m.display) for m in group.members] == [("u2", "Two")]

    def test_same_operations_give_same_result(self, users):
        operations = [
            {"op": "replace", "path": "displayName", "value": "Babs"},
            {"op": "add", "path": "emails", "value": [{"value": "babs@example.com", "type": "home"}]},
            {"op": "replace", "path": f"{ENTERPRISE}:department", "value": "Finance"},
        ]
        first = users.apply_all(make_user(), operations)
        second = users.apply_all(make_user(), operations)
        assert first.model_dump() == second.model_dump()
