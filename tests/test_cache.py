"""Tests for route caching and group invalidation"""

from unittest.mock import patch

import pytest

from onlylocks import cache
from onlylocks.utils.cache_utils import GAMES, TEAMS, cached_route, get_generation, invalidate


@pytest.fixture
def memory_cache(app):
    # Testing config uses NullCache; swap in a real store
    cache.init_app(app, config={"CACHE_TYPE": "SimpleCache"})
    return cache


def _team_count(client):
    return len(client.get("/api/teams").get_json()["teams"])


def test_response_is_served_from_cache(client, memory_cache, make_team):
    make_team("LAL")
    assert _team_count(client) == 1

    make_team("BOS")

    assert _team_count(client) == 1


def test_only_touched_groups_invalidate(client, memory_cache, make_team):
    make_team("LAL")
    assert _team_count(client) == 1
    make_team("BOS")

    invalidate(GAMES)
    assert _team_count(client) == 1

    invalidate(TEAMS)
    assert _team_count(client) == 2


def test_invalidate_bumps_every_group_by_default(app, memory_cache):
    invalidate()

    assert get_generation(GAMES) == 1
    assert get_generation(TEAMS) == 1


def test_team_sync_refreshes_team_listing(client, memory_cache, make_team):
    make_team("LAL")
    assert _team_count(client) == 1
    make_team("BOS")

    with patch(
        "onlylocks.routes.updates.routes.DataSync.sync_teams",
        return_value=(True, "Synced 2 teams"),
    ):
        assert client.patch("/api/updates/teams/info").status_code == 200

    assert _team_count(client) == 2


def test_unknown_group_is_rejected(app):
    with pytest.raises(ValueError):
        cached_route(groups=("picks",))
    with pytest.raises(ValueError):
        invalidate("picks")
