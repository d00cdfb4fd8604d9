import pytest

from helpdesk.core.errors import Forbidden, ValidationFailure
from helpdesk.orgs.policy import CAPABILITIES, Action, Role, authorize, ensure_owner_remains, is_allowed

CORE_TABLE = {
    Action.CHANGE_TICKET_STATUS: {Role.OWNER, Role.ADMIN, Role.AGENT},
    Action.EDIT_TICKET_CONTENT: {Role.OWNER, Role.ADMIN},
    Action.DELETE_TICKET: {Role.OWNER, Role.ADMIN},
    Action.CHANGE_MEMBER_ROLE: {Role.OWNER},
    Action.REMOVE_MEMBER: {Role.OWNER, Role.ADMIN},
}


@pytest.mark.parametrize("action,allowed_roles", list(CORE_TABLE.items()))
def test_capability_table(action, allowed_roles):
    for role in Role:
        assert is_allowed(role, action) is (role in allowed_roles)


def test_every_role_has_an_entry():
    assert set(CAPABILITIES) == set(Role)


def test_all_members_can_view_and_create_tickets():
    for role in Role:
        assert is_allowed(role, Action.VIEW)
        assert is_allowed(role, Action.CREATE_TICKET)


def test_authorize_allows_permitted_role():
    authorize(Role.AGENT, Action.CHANGE_TICKET_STATUS)


def test_authorize_raises_forbidden_with_reason():
    with pytest.raises(Forbidden) as exc:
        authorize(Role.VIEWER, Action.CHANGE_TICKET_STATUS)

    assert exc.value.status_code == 403
    assert exc.value.message == "Viewers cannot change ticket status"
    assert exc.value.details == {"role": "VIEWER", "action": "change_ticket_status"}


def test_authorize_uses_custom_reason():
    with pytest.raises(Forbidden) as exc:
        authorize(Role.ADMIN, Action.CHANGE_MEMBER_ROLE, "Only owners can grant the OWNER role")

    assert exc.value.message == "Only owners can grant the OWNER role"


def test_sole_owner_cannot_be_removed():
    with pytest.raises(ValidationFailure) as exc:
        ensure_owner_remains(Role.OWNER, 1)

    assert exc.value.message == "Cannot remove the only owner"


def test_one_of_several_owners_can_be_removed():
    ensure_owner_remains(Role.OWNER, 2)


@pytest.mark.parametrize("role", [Role.ADMIN, Role.AGENT, Role.VIEWER])
def test_non_owner_removal_ignores_owner_count(role):
    ensure_owner_remains(role, 1)
