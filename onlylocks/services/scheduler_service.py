"""
Only Locks Refresh Scheduler Service

Runs the data refresh and pick grading on a wall-clock schedule using
APScheduler. Work is organised in three tiers, each an ordered task list:

* frequent - game states, team box scores, player box scores, game states again
* hourly   - grade player picks, then team picks
* daily    - rebuild team and player season aggregates, standings, rosters

A single worker thread runs the jobs so tiers never overlap. A failing task
is logged and the tier moves on to its next task.
"""

import atexit
import logging
import threading
from contextlib import nullcontext
from datetime import datetime, timezone

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from flask import current_app, has_app_context

from onlylocks import db
from onlylocks.models import PlayerSeasonStats, TeamSeasonStats
from onlylocks.utils.cache_utils import invalidate
from onlylocks.utils.data_sync import DataSync
from onlylocks.utils.scoring import grade_player_picks, grade_team_picks

logger = logging.getLogger(__name__)

TIERS = ("frequent", "hourly", "daily")


def rebuild_team_season_stats():
    count = TeamSeasonStats.rebuild_all(current_app.config.get("NBA_SEASON"))
    db.session.commit()
    logger.info(f"Rebuilt season stats for {count} teams")
    return count


def rebuild_player_season_stats():
    count = PlayerSeasonStats.rebuild_all(current_app.config.get("NBA_SEASON"))
    db.session.commit()
    logger.info(f"Rebuilt season stats for {count} players")
    return count


def update_standings():
    count = TeamSeasonStats.update_standings(current_app.config.get("NBA_SEASON"))
    db.session.commit()
    logger.info(f"Updated standings for {count} teams")
    return count


def build_tier_tasks(tier, data_sync=None):
    """Ordered (name, callable) pairs making up a tier"""
    if tier == "frequent":
        data_sync = data_sync or DataSync()
        return [
            ("update_recent_games", data_sync.update_recent_games),
            ("update_team_game_stats", lambda: data_sync.update_team_game_stats("recent")),
            ("update_player_game_stats", lambda: data_sync.update_player_game_stats("recent")),
            # Second pass catches games that went final during the box-score pulls
            ("update_recent_games_again", data_sync.update_recent_games),
        ]
    if tier == "hourly":
        return [
            ("grade_player_picks", grade_player_picks),
            ("grade_team_picks", grade_team_picks),
        ]
    if tier == "daily":
        data_sync = data_sync or DataSync()
        return [
            ("rebuild_team_season_stats", rebuild_team_season_stats),
            ("rebuild_player_season_stats", rebuild_player_season_stats),
            ("update_standings", update_standings),
            ("sync_players", data_sync.sync_players),
        ]
    raise ValueError(f"Unknown tier: {tier}")


def _task_failed(result):
    # DataSync methods report (success, message)
    if isinstance(result, tuple) and len(result) == 2 and isinstance(result[0], bool):
        return not result[0]
    return False


class SchedulerService:
    """Manages the tiered background refresh jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self._lock = threading.Lock()
        self.sync_stats = {
            "total_runs": 0,
            "failed_tasks": 0,
            "last_error": None,
            "tiers": {tier: None for tier in TIERS},
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(
            daemon=True,
            timezone=app.config.get("TIMEZONE", "UTC"),
            executors={"default": ThreadPoolExecutor(max_workers=1)},
        )

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add the three tier jobs"""
        game_hours = self.app.config.get("SCHEDULER_GAME_HOURS", "0-2,12-23")

        # Every 15 minutes during the game window
        self.scheduler.add_job(
            func=self.run_tier,
            args=["frequent"],
            trigger=CronTrigger(minute="*/15", hour=game_hours),
            id="frequent_refresh",
            name="Refresh Games and Box Scores",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self.scheduler.add_job(
            func=self.run_tier,
            args=["hourly"],
            trigger=CronTrigger(minute=5),
            id="hourly_grading",
            name="Grade Open Picks",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=600,
        )

        # After the night's games are final
        self.scheduler.add_job(
            func=self.run_tier,
            args=["daily"],
            trigger=CronTrigger(hour=2, minute=30),
            id="daily_rebuild",
            name="Rebuild Season Stats, Standings and Rosters",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def run_tier(self, tier, tasks=None):
        """
        Run every task of a tier in order, isolating failures.

        Args:
            tier: "frequent", "hourly" or "daily"
            tasks: optional (name, callable) list replacing the tier's own

        Returns:
            dict report with one entry per task
        """
        if tier not in TIERS:
            raise ValueError(f"Unknown tier: {tier}")

        # Scheduled runs need their own context; manual runs reuse the caller's
        app = self.app or current_app._get_current_object()
        context = nullcontext() if has_app_context() else app.app_context()

        with self._lock, context:
            report = {
                "tier": tier,
                "started_at": datetime.now(timezone.utc).isoformat(),
                "tasks": [],
                "failed": 0,
            }
            logger.info(f"Running {tier} tier...")

            try:
                if tasks is None:
                    tasks = build_tier_tasks(tier)
            except Exception as e:
                logger.error(f"Could not prepare {tier} tier: {e}", exc_info=True)
                tasks = []
                report["failed"] += 1
                self.sync_stats["last_error"] = str(e)

            for name, func in tasks:
                entry = {"name": name, "ok": True}
                try:
                    result = func()
                    entry["result"] = result
                    if _task_failed(result):
                        entry["ok"] = False
                        self.sync_stats["last_error"] = f"{name}: {result[1]}"
                        logger.warning(f"{tier}/{name} reported failure: {result[1]}")
                except Exception as e:
                    db.session.rollback()
                    entry.update({"ok": False, "error": str(e)})
                    self.sync_stats["last_error"] = f"{name}: {e}"
                    logger.error(f"Error in {tier}/{name}: {e}", exc_info=True)

                if not entry["ok"]:
                    report["failed"] += 1
                report["tasks"].append(entry)

            # Read endpoints are cached; drop stale responses
            invalidate()

            report["finished_at"] = datetime.now(timezone.utc).isoformat()
            self.sync_stats["total_runs"] += 1
            self.sync_stats["failed_tasks"] += report["failed"]
            self.sync_stats["tiers"][tier] = {
                "last_run": report["finished_at"],
                "failed": report["failed"],
            }

            logger.info(f"Finished {tier} tier ({report['failed']} failed tasks)")
            return report

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.sync_stats}


# Global scheduler instance
scheduler_service = SchedulerService()
