from __future__ import annotations

import jwt
import pytest

from caseflow.infra import auth


def test_token_round_trips_actor_and_permissions() -> None:
    token = auth.create_access_token(user_id="engineer-1", permissions=["task.create", "task.create"])
    claims = auth.decode_access_token(token)
    assert claims["sub"] == "engineer-1"
    assert claims["permissions"] == ["task.create"]


def test_blank_actor_rejected() -> None:
    with pytest.raises(ValueError):
        auth.create_access_token(user_id="  ")


def test_foreign_issuer_rejected() -> None:
    token = jwt.encode(
        {"sub": "engineer-1", "iss": "someone-else", "exp": 4102444800},
        auth.JWT_SECRET,
        algorithm=auth.JWT_ALGORITHM,
    )
    with pytest.raises(jwt.InvalidIssuerError):
        auth.decode_access_token(token)
