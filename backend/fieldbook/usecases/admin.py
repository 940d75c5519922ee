from typing import Iterable

from ..domain.errors import MalformedRequestError, UserNotFoundError, UsernameTakenError
from ..domain.repositories import ConfigRepository, FieldRepository, Repositories, UserRepository
from ..domain.rules import BookingRules
from ..models import Field, User


async def get_rules(config: ConfigRepository) -> BookingRules:
    return await config.get_rules()


async def update_rules(config: ConfigRepository, *, rules: BookingRules) -> BookingRules:
    if not rules.open_ranges:
        raise MalformedRequestError("at least one open range is required")
    for open_range in rules.open_ranges:
        if open_range.start >= open_range.end:
            raise MalformedRequestError("open range start must be earlier than its end")
    return await config.save_rules(rules)


async def list_fields(fields: FieldRepository) -> list[Field]:
    return await fields.list_all()


async def replace_fields(fields: FieldRepository, *, entries: Iterable[tuple[str, str]]) -> list[Field]:
    ordered = list(entries)
    ids = [field_id for field_id, _ in ordered]
    if len(set(ids)) != len(ids):
        raise MalformedRequestError("field ids must be unique")
    return await fields.replace_all(ordered)


async def list_users(users: UserRepository) -> list[User]:
    return await users.list_all()


async def adjust_credits(users: UserRepository, *, username: str, delta: int) -> User:
    user = await users.adjust_credits(username, delta)
    if user is None:
        raise UserNotFoundError(f"unknown user {username!r}")
    return user


async def add_credits_to_all(users: UserRepository, *, amount: int) -> int:
    return await users.add_credits_all(amount)


async def rename_user(repos: Repositories, *, old_username: str, new_username: str) -> int:
    """Rename a user and move their reservations. Returns the number of reservations moved."""
    if await repos.users.get(old_username) is None:
        raise UserNotFoundError(f"unknown user {old_username!r}")
    if old_username == new_username:
        return 0
    if await repos.users.get(new_username) is not None:
        raise UsernameTakenError(f"username {new_username!r} already exists")
    await repos.users.rename(old_username, new_username)
    return await repos.reservations.reassign_user(old_username, new_username)


async def set_user_disabled(users: UserRepository, *, username: str, disabled: bool) -> User:
    user = await users.set_disabled(username, disabled)
    if user is None:
        raise UserNotFoundError(f"unknown user {username!r}")
    return user
