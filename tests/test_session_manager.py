"""Tests for the session lifecycle"""

import asyncio

import pytest

from storyshelf.auth.models import Anonymous, Authenticated
from storyshelf.auth.service import SessionManager
from storyshelf.core.storage import SESSION_TOKEN_KEY, TokenStore
from storyshelf.utils.exceptions import (
    AuthenticationRequiredError,
    DirectoryLookupError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidEmailError,
)


def test_sign_up_then_sign_in_returns_same_user(manager):
    async def scenario():
        signed_up = await manager.sign_up("kid@example.com", "p@ss1234", "Kid")
        manager.sign_out()
        signed_in = await manager.sign_in("kid@example.com", "p@ss1234")
        return signed_up, signed_in

    signed_up, signed_in = asyncio.run(scenario())
    assert signed_up.user.id == signed_in.user.id
    assert signed_in.user.display_name == "Kid"
    assert isinstance(manager.session, Authenticated)


def test_sign_up_lowercases_email(manager):
    session = asyncio.run(manager.sign_up("Kid@Example.COM", "p@ss1234"))
    assert session.email == "kid@example.com"
    assert manager.current_email() == "kid@example.com"


def test_sign_up_persists_token(manager, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    assert isinstance(storage.get(SESSION_TOKEN_KEY), str)


def test_duplicate_email_rejected_and_directory_unchanged(manager, backend, storage):
    async def scenario():
        await manager.sign_up("kid@example.com", "p@ss1234")
        manager.sign_out()
        with pytest.raises(DuplicateEmailError):
            await manager.sign_up("KID@example.com", "other-password")

    asyncio.run(scenario())
    assert backend.users.count_by_email("kid@example.com") == 1
    assert isinstance(manager.session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None


def test_invalid_email_rejected(manager, directory):
    with pytest.raises(InvalidEmailError):
        asyncio.run(manager.sign_up("not-an-email", "p@ss1234"))
    assert directory.calls == 0


def test_sign_in_errors_do_not_reveal_which_part_was_wrong(manager):
    async def scenario():
        await manager.sign_up("kid@example.com", "p@ss1234")
        manager.sign_out()
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await manager.sign_in("kid@example.com", "nope")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await manager.sign_in("nobody@example.com", "p@ss1234")
        return wrong_password.value, unknown_email.value

    wrong_password, unknown_email = asyncio.run(scenario())
    assert str(wrong_password) == str(unknown_email)
    assert isinstance(manager.session, Anonymous)


def test_restore_without_token_makes_no_directory_call(manager, directory):
    session = asyncio.run(manager.restore_session())
    assert isinstance(session, Anonymous)
    assert directory.calls == 0


def test_restore_in_new_process_is_authenticated(manager, directory, tokens, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))

    fresh = SessionManager(directory, tokens, TokenStore(storage))
    session = asyncio.run(fresh.restore_session())

    assert isinstance(session, Authenticated)
    assert session.email == "kid@example.com"


def test_restore_with_expired_token_clears_it(manager, clock, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    clock.advance(days=8)

    session = asyncio.run(manager.restore_session())

    assert isinstance(session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None


def test_restore_with_tampered_token_clears_it(manager, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    storage.set(SESSION_TOKEN_KEY, storage.get(SESSION_TOKEN_KEY) + "x")

    session = asyncio.run(manager.restore_session())

    assert isinstance(session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None


def test_restore_with_lookup_failure_drops_session(manager, directory, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    directory.fail_lookups = True

    session = asyncio.run(manager.restore_session())

    assert isinstance(session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None


def test_restore_for_missing_user_drops_session(manager, tokens, storage):
    storage.set(SESSION_TOKEN_KEY, tokens.issue("ghost-id", "ghost@example.com"))

    session = asyncio.run(manager.restore_session())

    assert isinstance(session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None


def test_sign_out_is_idempotent_and_offline(manager, directory, storage):
    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    calls = directory.calls

    manager.sign_out()
    manager.sign_out()

    assert isinstance(manager.session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None
    assert directory.calls == calls
    with pytest.raises(AuthenticationRequiredError):
        manager.current_email()


def test_listeners_see_every_transition(manager):
    seen = []
    unsubscribe = manager.subscribe(seen.append)

    asyncio.run(manager.sign_up("kid@example.com", "p@ss1234"))
    manager.sign_out()
    unsubscribe()
    manager.sign_out()

    assert [type(s) for s in seen] == [Authenticated, Anonymous]


def test_sign_in_backend_failure_is_not_reported_as_bad_credentials(manager, directory, storage):
    async def scenario():
        await manager.sign_up("kid@example.com", "p@ss1234")
        manager.sign_out()
        directory.fail_credentials = True
        with pytest.raises(DirectoryLookupError) as excinfo:
            await manager.sign_in("kid@example.com", "p@ss1234")
        return excinfo.value

    error = asyncio.run(scenario())
    assert not isinstance(error, InvalidCredentialsError)
    assert error.status_code == 503
    assert isinstance(manager.session, Anonymous)
    assert storage.get(SESSION_TOKEN_KEY) is None
