import pytest
from sqlalchemy import select

from app.core.errors import AuthorizationError, ValidationError
from app.core.security import hash_api_key
from app.models.api_key import ApiKey
from app.services.credentials import InvalidCredentials, sign_in


@pytest.mark.parametrize(
    ("role", "email"),
    [("seller", "seller@test.com"), ("agent", "agent@test.com"), ("admin", "admin@test.com")],
)
async def test_sign_in_issues_key_for_role(db_session, seed, role, email):
    principal, key = await sign_in(db_session, role=role, email=email, password=seed["password"])

    assert principal.role == role
    assert key.plain.startswith(f"ll_{key.prefix}_")
    row = (await db_session.execute(select(ApiKey).where(ApiKey.key_hash == hash_api_key(key.plain)))).scalar_one()
    assert row.principal_id == principal.id
    assert row.role == role


async def test_email_lookup_ignores_case(db_session, seed):
    principal, _ = await sign_in(db_session, role="seller", email="Seller@Test.com", password=seed["password"])
    assert principal.id == seed["seller"].principal_id


async def test_wrong_password(db_session, seed):
    with pytest.raises(InvalidCredentials) as exc:
        await sign_in(db_session, role="seller", email="seller@test.com", password="nope")
    assert exc.value.status_code == 401


async def test_role_decides_the_table(db_session, seed):
    # a member's credentials do not open the agent door
    with pytest.raises(InvalidCredentials):
        await sign_in(db_session, role="agent", email="seller@test.com", password=seed["password"])


async def test_pending_agent_cannot_sign_in(db_session, seed):
    with pytest.raises(AuthorizationError) as exc:
        await sign_in(db_session, role="agent", email="pending@test.com", password=seed["password"])
    assert "not approved" in exc.value.message


async def test_unknown_role(db_session, seed):
    with pytest.raises(ValidationError):
        await sign_in(db_session, role="users; drop table users", email="seller@test.com", password=seed["password"])
