from types import SimpleNamespace

import jwt
from fastapi_users import exceptions

from app.core.jwt_strategy import RS256JWTStrategyWithKid


class FakeUserManager:
    def __init__(self, *users):
        self.users = {u.id: u for u in users}

    def parse_id(self, value):
        try:
            return int(value)
        except ValueError as e:
            raise exceptions.InvalidID() from e

    async def get(self, user_id):
        if user_id not in self.users:
            raise exceptions.UserNotExists()
        return self.users[user_id]


async def test_token_has_kid_and_user_claims(tmp_path):
    strategy = RS256JWTStrategyWithKid(lifetime_seconds=60, key_file=str(tmp_path / "key.pem"))
    user = SimpleNamespace(id=7, username="ada")

    token = await strategy.write_token(user)

    assert jwt.get_unverified_header(token)["kid"] == "v1"
    claims = jwt.decode(
        token,
        strategy.decode_key,
        algorithms=["RS256"],
        audience=strategy.token_audience,
    )
    assert claims["sub"] == "user:7"
    assert claims["username"] == "ada"
    assert claims["exp"] - claims["iat"] == 60
    assert await strategy.read_token(token, FakeUserManager(user)) is user


async def test_unreadable_tokens_resolve_to_no_user(tmp_path):
    strategy = RS256JWTStrategyWithKid(lifetime_seconds=60, key_file=str(tmp_path / "key.pem"))
    user = SimpleNamespace(id=7, username="ada")
    token = await strategy.write_token(user)

    assert await strategy.read_token(None, FakeUserManager(user)) is None
    assert await strategy.read_token("not-a-jwt", FakeUserManager(user)) is None
    assert await strategy.read_token(token, FakeUserManager()) is None


def test_key_is_reused_from_disk(tmp_path):
    key_file = tmp_path / "key.pem"
    first = RS256JWTStrategyWithKid(lifetime_seconds=60, key_file=str(key_file))
    second = RS256JWTStrategyWithKid(lifetime_seconds=60, key_file=str(key_file))

    assert key_file.exists()
    assert first.get_jwks() == second.get_jwks()
