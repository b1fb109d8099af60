"""Create a platform-admin user and print a fresh admin API key."""
from __future__ import annotations

import sys

from sqlalchemy import select

from orderdesk.db import get_sessionmaker, init_engine
from orderdesk.models.api_key import ApiKey, ApiScope
from orderdesk.models.user import User
from orderdesk.utils.apikey import gen_key


def main(username: str = "platform-admin") -> None:
    init_engine()
    db = get_sessionmaker()()

    try:
        user = db.scalars(select(User).where(User.username == username)).first()
        if user is None:
            user = User(username=username, email=f"{username}@example.com", is_active=True)
            db.add(user)
            db.flush()

        raw_token, prefix, key_hash = gen_key()
        api_key = ApiKey(
            name=f"{username}-{prefix}",
            prefix=prefix,
            key_hash=key_hash,
            scope=ApiScope.admin,
            user_id=user.id,
            is_active=True,
        )
        db.add(api_key)
        db.commit()
        db.refresh(api_key)

        print("Admin API key created. It is shown only once:")
        print(f"    Authorization: Bearer {raw_token}")
        print(f"(key id: {api_key.id}, user id: {user.id}, scope: {api_key.scope.value})")
    finally:
        db.close()


if __name__ == "__main__":
    main(*sys.argv[1:2])
