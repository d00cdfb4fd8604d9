import pytest

from helpdesk.core.errors import Forbidden
from helpdesk.orgs.membership import MembershipResolver
from helpdesk.orgs.policy import Role


@pytest.mark.asyncio
async def test_resolve_returns_role_for_member(session_factory, tenant):
    resolver = MembershipResolver(session_factory)

    membership = await resolver.resolve(tenant.agent.id, tenant.organization_id)

    assert membership is not None
    assert membership.role is Role.AGENT
    assert membership.organization_id == tenant.organization_id


@pytest.mark.asyncio
async def test_resolve_returns_none_for_stranger(session_factory, tenant, signup):
    stranger = await signup("stranger@elsewhere.test", org_name="Elsewhere")
    resolver = MembershipResolver(session_factory)

    assert await resolver.resolve(stranger.user.id, tenant.organization_id) is None
    assert await resolver.resolve(tenant.owner.id, "no-such-org") is None


@pytest.mark.asyncio
async def test_require_raises_forbidden_without_membership(session_factory, tenant):
    resolver = MembershipResolver(session_factory)

    with pytest.raises(Forbidden) as exc:
        await resolver.require(tenant.owner.id, "no-such-org")

    assert exc.value.status_code == 403
    assert exc.value.message == "Access denied to this organization"
