"""
Cache utilities for Only Locks

Cached read routes are keyed on the generation of every data group they
read. A refresh bumps the generation of the groups it touched, so stale
responses are never hit again and simply age out. No key enumeration is
needed, which SimpleCache and NullCache cannot do.
"""

import functools

from flask import current_app, request

from onlylocks import cache

GAMES = "games"
TEAMS = "teams"
PLAYERS = "players"
STATS = "stats"
DATA_GROUPS = (GAMES, TEAMS, PLAYERS, STATS)


def _check_groups(groups):
    unknown = [group for group in groups if group not in DATA_GROUPS]
    if unknown:
        raise ValueError(f"Unknown cache group(s): {', '.join(unknown)}")


def get_generation(group):
    return cache.get(f"generation_{group}") or 0


def make_cache_key(key_prefix, groups):
    """Cache key from the route prefix, request path and query, and group generations"""
    query = request.query_string.decode() if request.query_string else ""
    generations = ".".join(f"{group}{get_generation(group)}" for group in groups)
    return f"{key_prefix}:{request.path}?{query}:{generations}"


def cached_route(timeout=300, key_prefix="view", groups=DATA_GROUPS):
    """
    Decorator for caching route responses

    Routes using it must return plain dicts so the cached value
    serializes with any backend.

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
        groups: Data groups the response is built from
    """
    _check_groups(groups)

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, groups)

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate(*groups):
    """
    Invalidate cached responses built from the given data groups

    Args:
        groups: Data groups that changed; all of them when none are given
    """
    groups = groups or DATA_GROUPS
    _check_groups(groups)
    try:
        for group in groups:
            # timeout=0 keeps the counter until the next bump
            cache.set(f"generation_{group}", get_generation(group) + 1, timeout=0)
        current_app.logger.info(f"Cache invalidated for: {', '.join(groups)}")
    except Exception as e:
        current_app.logger.error(f"Failed to invalidate cache: {e}")
