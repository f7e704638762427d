"""
Tests for response projection (attributes / excludedAttributes, RFC 7644 Section 3.9).
"""
import pytest
from multiscim.utils.attribute_filter import AttributeProjector

ENTERPRISE = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


class TestAttributeProjector:
    """Projection of serialized resources."""

    @pytest.fixture
    def user_resource(self):
        return {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:User", ENTERPRISE],
            "id": "2819c223-7f76-453a-919d-413861904646",
            "externalId": "701984",
            "userName": "bjensen@example.com",
            "name": {
                "formatted": "Ms. Barbara J Jensen, III",
                "familyName": "Jensen",
                "givenName": "Barbara",
                "middleName": None,
            },
            "displayName": "Babs Jensen",
            "nickName": None,
            "emails": [
                {"value": "bjensen@example.com", "type": "work", "primary": True},
                {"value": "babs@jensen.org", "type": "home", "primary": None},
            ],
            "addresses": [
                {
                    "type": "work",
                    "streetAddress": "100 Universal City Plaza",
                    "locality": "Hollywood",
                    "postalCode": "91608",
                },
            ],
            "phoneNumbers": [],
            "groups": None,
            "active": False,
            ENTERPRISE: {
                "employeeNumber": "701984",
                "department": "Tour Operations",
                "manager": {"value": "26118915", "$ref": "../Users/26118915", "displayName": None},
            },
            "meta": {
                "resourceType": "User",
                "created": "2010-01-23T04:56:22Z",
                "lastModified": "2011-05-13T04:42:34Z",
                "location": "/scim/v2/Users/2819c223-7f76-453a-919d-413861904646",
                "version": 'W/"3694e05e9dff590"',
            },
        }

    @pytest.fixture
    def group_resource(self):
        return {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Group"],
            "id": "e9e30dba-f08f-4109-8486-d5c6a331660a",
            "displayName": "Tour Guides",
            "members": [
                {"value": "2819c223", "$ref": "../Users/2819c223", "display": "Babs Jensen", "type": "User"},
            ],
            "meta": {"resourceType": "Group", "created": "2010-01-23T04:56:22Z", "lastModified": "2011-05-13T04:42:34Z"},
        }

    def test_no_parameters_only_prunes(self, user_resource):
        result = AttributeProjector.project(user_resource)

        assert result["userName"] == "bjensen@example.com"
        assert "nickName" not in result
        assert "phoneNumbers" not in result
        assert "groups" not in result
        assert "middleName" not in result["name"]
        assert "primary" not in result["emails"][1]
        assert "displayName" not in result[ENTERPRISE]["manager"]

    def test_false_is_not_pruned(self, user_resource):
        assert AttributeProjector.project(user_resource)["active"] is False

    def test_input_is_not_modified(self, user_resource):
        AttributeProjector.project(user_resource, excluded_attributes=["name"])
        assert "name" in user_resource
        assert user_resource["nickName"] is None

    def test_attributes_simple(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=["userName", "displayName"])

        assert set(result) == {"schemas", "id", "meta", "userName", "displayName"}

    def test_attributes_nested(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=["name.givenName", "name.familyName"])

        assert result["name"] == {"givenName": "Barbara", "familyName": "Jensen"}
        assert "emails" not in result

    def test_attributes_multi_valued(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=["emails.value"])

        assert result["emails"] == [{"value": "bjensen@example.com"}, {"value": "babs@jensen.org"}]

    def test_excluded_attributes(self, user_resource):
        result = AttributeProjector.project(user_resource, excluded_attributes=["emails", "active", ENTERPRISE])

        assert "emails" not in result
        assert "active" not in result
        assert ENTERPRISE not in result
        assert result["displayName"] == "Babs Jensen"

    def test_excluded_nested_in_multi_valued(self, user_resource):
        result = AttributeProjector.project(user_resource, excluded_attributes=["addresses.streetAddress", "addresses.postalCode"])

        assert result["addresses"] == [{"type": "work", "locality": "Hollywood"}]

    def test_exclusion_wins_over_inclusion(self, user_resource):
        result = AttributeProjector.project(
            user_resource,
            attributes=["userName", "displayName"],
            excluded_attributes=["displayName"],
        )

        assert "userName" in result
        assert "displayName" not in result

    @pytest.mark.parametrize("params", [
        {"attributes": ["userName"]},
        {"excluded_attributes": ["schemas", "id", "meta"]},
        {"attributes": ["displayName"], "excluded_attributes": ["id"]},
    ])
    def test_core_attributes_always_returned(self, user_resource, params):
        result = AttributeProjector.project(user_resource, **params)

        assert result["schemas"] == user_resource["schemas"]
        assert result["id"] == user_resource["id"]
        assert result["meta"] == user_resource["meta"]

    def test_case_insensitive_attributes(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=["USERNAME", "DisplayName", "name.GIVENNAME"])

        assert result["userName"] == "bjensen@example.com"
        assert result["displayName"] == "Babs Jensen"
        assert result["name"] == {"givenName": "Barbara"}

    def test_core_schema_qualified_attribute(self, user_resource):
        result = AttributeProjector.project(
            user_resource,
            attributes=["urn:ietf:params:scim:schemas:core:2.0:User:userName"],
        )

        assert result["userName"] == "bjensen@example.com"
        assert "displayName" not in result

    def test_extension_attributes(self, user_resource):
        result = AttributeProjector.project(
            user_resource,
            attributes=["userName", f"{ENTERPRISE}:employeeNumber", f"{ENTERPRISE}:manager.value"],
        )

        assert result[ENTERPRISE] == {"employeeNumber": "701984", "manager": {"value": "26118915"}}

    def test_whole_extension(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=[ENTERPRISE])

        assert result[ENTERPRISE]["department"] == "Tour Operations"
        assert "userName" not in result

    def test_omit(self, group_resource):
        result = AttributeProjector.project(group_resource, omit=("members",))

        assert "members" not in result
        assert result["displayName"] == "Tour Guides"

    def test_omit_never_removes_core_attributes(self, group_resource):
        result = AttributeProjector.project(group_resource, omit=("id", "members"))

        assert result["id"] == group_resource["id"]

    def test_project_many(self, user_resource, group_resource):
        result = AttributeProjector.project_many([user_resource, group_resource], attributes=["displayName"])

        assert [r["displayName"] for r in result] == ["Babs Jensen", "Tour Guides"]
        assert "emails" not in result[0]
        assert "members" not in result[1]

    def test_requested_empty_attribute_is_not_emitted(self, user_resource):
        result = AttributeProjector.project(user_resource, attributes=["phoneNumbers"])

        assert "phoneNumbers" not in result
