import argparse
import asyncio
import hashlib
import logging
import secrets

from fastapi import HTTPException, status
from fastapi.security import HTTPBasicCredentials

from caporslap.load_secrets import pepper_data
from caporslap.store import KeyValueStore


def hash_password(password: str, salt: str) -> str:
    return hashlib.sha256((password + salt + pepper_data).encode()).hexdigest()


class BasicAuthentication:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def check_admin(self, credentials: HTTPBasicCredentials) -> str:
        """Check the admin credentials sent with a prize pool request

        Args:
            credentials (HTTPBasicCredentials): Username and password from the Authorization header

        Raises:
            HTTPException: The username is not a registered admin
            HTTPException: The password is incorrect

        Returns:
            str: Authenticated admin username
        """
        user_data = await self.store.get_admin_user(credentials.username)
        if user_data is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username",
                headers={"WWW-Authenticate": "Basic"},
            )

        hashed_password = hash_password(credentials.password, user_data["salt"])
        if not secrets.compare_digest(hashed_password, user_data["hash_password"]):
            logging.warning(f"Rejected admin login for {credentials.username}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid password",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    async def store_admin(self, username: str, password: str) -> None:
        salt = secrets.token_hex(8)
        await self.store.save_admin_user(username, salt, hash_password(password, salt))


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Register a prize pool admin")
    parser.add_argument("--username", type=str, help="Username", required=True)
    parser.add_argument("--password", type=str, help="Password", required=True)
    return parser


async def main(user_name: str, password: str):
    from caporslap.create_redis_client import redis

    basic_auth = BasicAuthentication(KeyValueStore(redis))
    await basic_auth.store_admin(user_name, password)
    print(f"Stored admin {user_name}")


if __name__ == "__main__":
    parser = get_parser()
    args = parser.parse_args()
    asyncio.run(main(args.username, args.password))
