import logging
import time
from datetime import timedelta
from functools import wraps

import requests
from flask import current_app

from onlylocks import db
from onlylocks.models import Game, Player, PlayerGameStats, Team, TeamGameStats
from onlylocks.utils.timezone_utils import (
    get_local_date,
    parse_api_datetime,
    utc_bounds_for_local_date,
)

logger = logging.getLogger(__name__)

# API-Sports status.short -> local lifecycle
STATUS_MAP = {1: Game.SCHEDULED, 2: Game.IN_PLAY, 3: Game.FINISHED}

# Provider box-score field -> column
STAT_FIELDS = {
    "points": "points",
    "fgm": "fgm",
    "fga": "fga",
    "ftm": "ftm",
    "fta": "fta",
    "tpm": "tpm",
    "tpa": "tpa",
    "offReb": "off_reb",
    "defReb": "def_reb",
    "assists": "assists",
    "pFouls": "fouls",
    "steals": "steals",
    "turnovers": "turnovers",
    "blocks": "blocks",
    "plusMinus": "plus_minus",
}
PERCENT_FIELDS = {"fgp": "fgp", "ftp": "ftp", "tpp": "tpp"}
TEAM_FIELDS = {
    "fastBreakPoints": "fast_break_points",
    "pointsInPaint": "points_in_paint",
    "secondChancePoints": "second_chance_points",
    "pointsOffTurnovers": "points_off_turnovers",
}


class DataSyncError(Exception):
    """The provider answered, but with an error payload"""


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)

                except requests.exceptions.HTTPError as e:
                    status = e.response.status_code if e.response is not None else 0
                    if status != 429 and status < 500:
                        raise
                    delay = base_delay * (backoff_factor**attempt)
                    if status == 429:
                        delay = float(e.response.headers.get("Retry-After", delay))
                    logger.warning(
                        f"HTTP {status}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if attempt < max_retries - 1:
                        time.sleep(delay)
                    else:
                        raise

                except requests.exceptions.RequestException as e:
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if attempt < max_retries - 1:
                        time.sleep(delay)
                    else:
                        raise

            raise DataSyncError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


def _int(value):
    """Provider counters arrive as ints, numeric strings ("+5"), "34:12" or null"""
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if ":" in text:
        text = text.split(":", 1)[0]
    try:
        return int(float(text))
    except ValueError:
        return 0


def _float(value):
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_stat_line(data, team=False):
    """Map a provider stat line onto box-score columns; absent fields are 0"""
    values = {column: _int(data.get(field)) for field, column in STAT_FIELDS.items()}
    values.update({column: _float(data.get(field)) for field, column in PERCENT_FIELDS.items()})
    values["minutes"] = _int(data.get("min"))
    if team:
        values.update({column: _int(data.get(field)) for field, column in TEAM_FIELDS.items()})
    return values


class DataSync:
    """
    Handles synchronization of NBA data from API-Sports with rate limiting and failsafe mechanisms
    """

    def __init__(self, api_base_url=None, api_key=None, api_host=None, season=None):
        config = current_app.config
        self.api_base_url = (api_base_url or config.get("NBA_API_BASE_URL")).rstrip("/")
        self.season = season or config.get("NBA_SEASON")
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "Only-Locks/1.0",
                "x-rapidapi-key": api_key or config.get("NBA_API_KEY") or "",
                "x-rapidapi-host": api_host or config.get("NBA_API_HOST"),
            }
        )

        # Rate limiting configuration
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = 0.25
        self.max_requests_per_minute = config.get("NBA_API_REQUESTS_PER_MINUTE", 60)
        self.request_timestamps = []

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        current_time = time.time()

        # Remove timestamps older than 1 minute
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        if len(self.request_timestamps) >= self.max_requests_per_minute:
            sleep_time = 60 - (current_time - self.request_timestamps[0])
            if sleep_time > 0:
                logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                time.sleep(sleep_time)
                self.request_timestamps = []

        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, endpoint, params=None):
        """GET an endpoint and return the ``response`` list of the payload"""
        self._enforce_rate_limit()

        url = f"{self.api_base_url}/{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=30)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.warning(f"Request timeout for {url}")
            raise
        except requests.exceptions.ConnectionError:
            logger.warning(f"Connection error for {url}")
            raise

        payload = response.json()
        # API-Sports reports bad keys, plan limits etc. with a 200 and an errors field
        errors = payload.get("errors")
        if errors:
            raise DataSyncError(f"{endpoint} {params}: {errors}")
        return payload.get("response") or []

    # Teams and players

    def _upsert_team(self, data):
        team = Team.get_by_api_id(data["id"])
        if team is None:
            team = Team(api_id=data["id"])
            db.session.add(team)

        team.name = data.get("name") or team.name or ""
        team.nickname = data.get("nickname") or team.nickname or team.name
        team.code = data.get("code") or team.code or ""
        team.city = data.get("city") or team.city
        team.logo_url = data.get("logo") or team.logo_url

        standard = (data.get("leagues") or {}).get("standard") or {}
        team.conference = standard.get("conference") or team.conference
        team.division = standard.get("division") or team.division
        return team

    def sync_teams(self):
        """Sync NBA franchises"""
        try:
            teams = []
            for data in self._make_api_request("teams"):
                if not data.get("nbaFranchise") or data.get("allStar"):
                    continue
                teams.append(self._upsert_team(data))

            db.session.commit()
            logger.info(f"Synced {len(teams)} teams")
            return True, f"Synced {len(teams)} teams"

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error syncing teams: {str(e)}")
            return False, str(e)

    def _upsert_player(self, data, team=None):
        player = Player.get_by_api_id(data["id"])
        if player is None:
            player = Player(api_id=data["id"])
            db.session.add(player)

        player.first_name = data.get("firstname") or player.first_name or ""
        player.last_name = data.get("lastname") or player.last_name or ""

        birth = data.get("birth") or {}
        player.birthday = birth.get("date") or player.birthday
        height = data.get("height") or {}
        if height.get("feets"):
            player.height = f"{height['feets']}-{height.get('inches') or 0}"
        weight = data.get("weight") or {}
        player.weight = weight.get("pounds") or player.weight
        player.college = data.get("college") or player.college

        standard = (data.get("leagues") or {}).get("standard") or {}
        if standard.get("jersey") is not None:
            player.number = _int(standard["jersey"])
        player.position = standard.get("pos") or player.position

        if team is not None and player.team_id != team.id:
            if player.team_id is not None:
                logger.info(f"{player.full_name} moved to {team.code}")
            player.team = team
        return player

    def sync_players(self, season=None):
        """Sync rosters for every team, capturing trades"""
        season = season or self.season
        synced = 0
        failed = []

        for team in Team.query.order_by(Team.id).all():
            try:
                for data in self._make_api_request(
                    "players", {"team": team.api_id, "season": season}
                ):
                    standard = (data.get("leagues") or {}).get("standard")
                    if standard is not None and standard.get("active") is False:
                        continue
                    self._upsert_player(data, team)
                    synced += 1
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                failed.append(team.code)
                logger.error(f"Error syncing roster for {team.code}: {e}")

        message = f"Synced {synced} players"
        if failed:
            message += f"; failed teams: {', '.join(failed)}"
        logger.info(message)
        return not failed, message

    # Games

    def _upsert_game(self, data):
        teams = data.get("teams") or {}
        home_data = teams.get("home") or {}
        away_data = teams.get("visitors") or {}
        if not home_data.get("id") or not away_data.get("id"):
            return None

        home = Team.get_by_api_id(home_data["id"]) or self._upsert_team(home_data)
        away = Team.get_by_api_id(away_data["id"]) or self._upsert_team(away_data)
        db.session.flush()

        start = parse_api_datetime((data.get("date") or {}).get("start"))
        game = Game.get_by_api_id(data["id"])
        if game is None:
            if start is None:
                logger.warning(f"Skipping game {data['id']}: no start time")
                return None
            game = Game(api_id=data["id"], home_team_id=home.id, away_team_id=away.id)
            db.session.add(game)

        game.season = data.get("season") or game.season or self.season
        if start is not None:
            game.game_time = start
        arena = data.get("arena") or {}
        if arena.get("name"):
            game.location = ", ".join(part for part in (arena.get("name"), arena.get("city")) if part)

        status_data = data.get("status") or {}
        status = STATUS_MAP.get(status_data.get("short"), Game.IN_PLAY)
        scores = data.get("scores") or {}
        game.apply_update(
            status,
            home_score=(scores.get("home") or {}).get("points"),
            away_score=(scores.get("visitors") or {}).get("points"),
            clock=status_data.get("clock"),
            quarter=(data.get("periods") or {}).get("current"),
        )
        return game

    def _sync_games(self, params):
        games = []
        for data in self._make_api_request("games", params):
            game = self._upsert_game(data)
            if game is not None:
                games.append(game)
        return games

    def sync_season_games(self, season=None):
        """Sync the full schedule (and results so far) for a season"""
        season = season or self.season
        try:
            games = self._sync_games({"league": "standard", "season": season})
            db.session.commit()
            logger.info(f"Synced {len(games)} games for {season}")
            return True, f"Synced {len(games)} games"
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error syncing season games: {str(e)}")
            return False, str(e)

    def recent_window(self):
        """Naive UTC bounds covering local yesterday and today"""
        today = get_local_date()
        start, _ = utc_bounds_for_local_date(today - timedelta(days=1))
        _, end = utc_bounds_for_local_date(today)
        return start, end

    def update_recent_games(self):
        """Refresh state and scores of yesterday's and today's games"""
        start, end = self.recent_window()
        try:
            games = []
            day = start.date()
            # The provider buckets games by UTC date
            while day <= end.date():
                games.extend(self._sync_games({"date": day.isoformat()}))
                day += timedelta(days=1)
            db.session.commit()
            logger.info(f"Updated {len(games)} recent games")
            return True, f"Updated {len(games)} games"
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating recent games: {str(e)}")
            return False, str(e)

    def update_all_games(self):
        return self.sync_season_games()

    def _games_for_stats(self, method):
        query = Game.query.filter(Game.status != Game.SCHEDULED)
        if method == "recent":
            start, end = self.recent_window()
            query = query.filter(Game.game_time >= start, Game.game_time < end)
        elif method != "all":
            raise ValueError(f"Unknown update method: {method}")
        return query.order_by(Game.game_time).all()

    # Box scores

    def update_team_game_stats(self, method="recent"):
        """Upsert team box scores for started games"""
        games = self._games_for_stats(method)
        updated = 0
        failed = 0

        for game in games:
            try:
                for entry in self._make_api_request("games/statistics", {"id": game.api_id}):
                    team = Team.get_by_api_id((entry.get("team") or {}).get("id"))
                    lines = entry.get("statistics") or []
                    if team is None or not lines:
                        continue
                    TeamGameStats.upsert(team.id, game.id, parse_stat_line(lines[0], team=True))
                    updated += 1
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                failed += 1
                logger.error(f"Error updating team stats for game {game.api_id}: {e}")

        message = f"Updated {updated} team box scores across {len(games)} games"
        logger.info(message)
        return failed == 0, message

    def update_player_game_stats(self, method="recent"):
        """Upsert player box scores for started games; unknown players are created"""
        games = self._games_for_stats(method)
        updated = 0
        failed = 0

        for game in games:
            try:
                for entry in self._make_api_request("players/statistics", {"game": game.api_id}):
                    # No minutes recorded: did not play, leave without a row
                    if entry.get("min") in (None, "", "0", "0:00", "00:00"):
                        continue

                    team = Team.get_by_api_id((entry.get("team") or {}).get("id"))
                    player_data = entry.get("player") or {}
                    if not player_data.get("id"):
                        continue
                    player = Player.get_by_api_id(player_data["id"])
                    if player is None:
                        player = self._upsert_player(player_data, team)
                        db.session.flush()

                    PlayerGameStats.upsert(
                        player.id,
                        game.id,
                        parse_stat_line(entry),
                        team_id=team.id if team else None,
                    )
                    updated += 1
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                failed += 1
                logger.error(f"Error updating player stats for game {game.api_id}: {e}")

        message = f"Updated {updated} player box scores across {len(games)} games"
        logger.info(message)
        return failed == 0, message
