"""
Poll Option and Vote Tests
===========================
"""

import pytest

from televise.core.errors import NotFound
from televise.polls import PollStore
from televise.snowflake import Snowflake


@pytest.fixture
def polls(database, generator, clock):
    return PollStore(database, generator, clock=clock)


async def test_results_without_options(polls):
    with pytest.raises(NotFound):
        await polls.last_results()


async def test_votes_tallied_for_latest_option(polls, clock):
    old = await polls.insert_option("Metropolis")
    clock.advance(1)
    new = await polls.insert_option("Nosferatu")

    assert await polls.cast_vote("viewer-a", new)
    assert await polls.cast_vote("viewer-b", new)
    assert await polls.cast_vote("viewer-a", old)

    result = await polls.last_results()
    assert result.option_id == new
    assert result.title == "Nosferatu"
    assert result.votes == 2


async def test_repeat_vote_ignored(polls):
    option = await polls.insert_option("Metropolis")

    assert await polls.cast_vote("viewer-a", option) is True
    assert await polls.cast_vote("viewer-a", option) is False
    assert (await polls.last_results()).votes == 1


async def test_vote_for_unknown_option(polls):
    with pytest.raises(NotFound):
        await polls.cast_vote("viewer-a", Snowflake(0xDEADBEEF))


async def test_empty_title_rejected(polls):
    with pytest.raises(ValueError):
        await polls.insert_option("")
