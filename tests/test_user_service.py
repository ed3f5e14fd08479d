import pytest

from convo_sync.services.user_service import UnknownUserError, UserDirectory


@pytest.mark.asyncio
async def test_saved_users_are_loaded_back(store):
    await UserDirectory(store).save("bob", "Bob", "https://cdn.example.com/bob.png")

    directory = UserDirectory(store)
    users = await directory.load()

    assert list(users) == ["bob"]
    bob = directory.lookup("bob")
    assert bob.name == "Bob"
    assert bob.avatar_url == "https://cdn.example.com/bob.png"


@pytest.mark.asyncio
async def test_saving_again_renames_the_user(store):
    directory = UserDirectory(store)
    await directory.save("alice", "Alice")
    await directory.save("alice", "Alicia")

    await directory.load()

    assert directory.lookup("alice").name == "Alicia"


@pytest.mark.asyncio
async def test_lookup_of_unknown_user_raises(store):
    directory = UserDirectory(store)
    await directory.save("alice", "Alice")

    with pytest.raises(UnknownUserError, match="zed"):
        directory.lookup("zed")
