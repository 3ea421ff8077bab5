#!/usr/bin/env python3
"""
Only Locks Management CLI

Command-line management for the Only Locks API: data refreshes, pick
grading, users and the database.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from onlylocks import create_app, db
from onlylocks.models import Game, Pick, PickStatus, Player, Team, User
from onlylocks.services.scheduler_service import (
    TIERS,
    rebuild_player_season_stats,
    rebuild_team_season_stats,
    scheduler_service,
    update_standings,
)
from onlylocks.utils.data_sync import DataSync
from onlylocks.utils.scoring import PICK_KINDS, grade_open_picks

app = create_app()


def _echo_result(result):
    success, message = result
    click.echo(f"✅ {message}" if success else f"❌ {message}")


@click.group()
def cli():
    """Only Locks Management CLI"""
    pass


# Data Sync Commands
@cli.group()
def sync():
    """Data synchronization commands"""
    pass


@sync.command()
@with_appcontext
def teams():
    """Sync NBA franchises"""
    click.echo("Syncing teams...")
    _echo_result(DataSync().sync_teams())


@sync.command()
@click.option("--season", type=int, help="Season year (default: NBA_SEASON)")
@with_appcontext
def players(season):
    """Sync team rosters"""
    click.echo("Syncing players...")
    _echo_result(DataSync().sync_players(season))


@sync.command()
@click.option("--season", type=int, help="Season year (default: NBA_SEASON)")
@with_appcontext
def games(season):
    """Sync the full season schedule"""
    click.echo("Syncing season games...")
    _echo_result(DataSync().sync_season_games(season))


@sync.command()
@with_appcontext
def recent():
    """Update yesterday's and today's games"""
    click.echo("Updating recent games...")
    _echo_result(DataSync().update_recent_games())


@sync.command()
@click.option(
    "--method",
    type=click.Choice(["recent", "all"]),
    default="recent",
    help="Recent games only, or every played game of the season",
)
@with_appcontext
def boxscores(method):
    """Pull team and player box scores"""
    data_sync = DataSync()
    click.echo(f"Updating team box scores ({method})...")
    _echo_result(data_sync.update_team_game_stats(method))
    click.echo(f"Updating player box scores ({method})...")
    _echo_result(data_sync.update_player_game_stats(method))


# Stats Commands
@cli.group()
def stats():
    """Season aggregate commands"""
    pass


@stats.command()
@with_appcontext
def rebuild():
    """Rebuild team and player season aggregates"""
    try:
        team_count = rebuild_team_season_stats()
        player_count = rebuild_player_season_stats()
        click.echo(f"✅ Rebuilt season stats for {team_count} teams and {player_count} players")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error rebuilding stats: {str(e)}")
        logging.error(f"Season stats rebuild failed - SQL error: {e}")


@stats.command()
@with_appcontext
def standings():
    """Recompute wins, losses and conference/division ranks"""
    try:
        count = update_standings()
        click.echo(f"✅ Updated standings for {count} teams")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error updating standings: {str(e)}")
        logging.error(f"Standings update failed - SQL error: {e}")


@cli.command()
@click.option("--kind", type=click.Choice(list(PICK_KINDS)), default="all")
@with_appcontext
def grade(kind):
    """Grade open picks on finished games"""
    report = grade_open_picks(kind)
    click.echo(
        f"Graded {report['graded']} picks: {report['won']} won, {report['lost']} lost, "
        f"{report['skipped']} skipped, {report['failed']} failed"
    )


@cli.command()
@click.argument("name", type=click.Choice(TIERS))
@with_appcontext
def tier(name):
    """Run a scheduler tier now"""
    report = scheduler_service.run_tier(name)
    for task in report["tasks"]:
        mark = "✅" if task["ok"] else "❌"
        click.echo(f"  {mark} {task['name']}")
    click.echo(f"{name} tier finished with {report['failed']} failed tasks")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("password")
@click.option("--admin", is_flag=True, help="Mark the user as an admin")
@with_appcontext
def create(username, password, admin):
    """Create a user"""
    try:
        if User.get_by_username(username):
            click.echo(f"❌ User '{username}' already exists!")
            return

        user = User(username=username, is_admin=admin)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        click.echo(f"✅ Created user '{username}'")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ User '{username}' already exists!")
        logging.error(f"User creation failed - integrity error: {e}")


@user.command("list")
@with_appcontext
def list_users():
    """List all users by points"""
    users = User.query.order_by(User.points.desc(), User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        admin = " (admin)" if u.is_admin else ""
        click.echo(f"  {u.username}{admin}: {u.points} pts, {u.wins}-{u.losses}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏀 Only Locks Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    season = app.config.get("NBA_SEASON")
    click.echo(f"📅 Season: {season}")
    click.echo(f"🏀 Teams: {Team.query.count()}")
    click.echo(f"👤 Players: {Player.query.count()}")

    game_count = Game.query.filter_by(season=season).count()
    final_count = Game.query.filter_by(season=season, status=Game.FINISHED).count()
    click.echo(f"📊 Games: {final_count}/{game_count} finished")

    open_picks = Pick.query.filter_by(status=PickStatus.OPEN).count()
    click.echo(f"🎯 Open picks: {open_picks}")
    click.echo(f"👥 Users: {User.query.count()}")


if __name__ == "__main__":
    with app.app_context():
        cli()
