"""
Flask CLI commands for EduSync
"""

import click
from flask import Flask
import logging

from db_single import get_db, get_session
from init_db import run_on_startup
from models import ROLES, ROLE_CREATOR
from user_helpers import create_user, list_users
from leave_helpers import set_system_default_leaves, get_system_default_leaves
from maintenance import get_monitor
from diagnostics import AISystemDiagnostics

logger = logging.getLogger(__name__)


def register_cli_commands(app: Flask):
    """Register CLI commands with the Flask app"""

    @app.cli.command("setup-db")
    def setup_db_command():
        """Create tables and seed system flags and AI settings"""
        click.echo("🚀 Setting up database...")
        if run_on_startup(get_db(), app.extensions['edusync_config']):
            click.echo("✅ Database setup completed successfully!")
        else:
            click.echo("❌ Database setup failed!")

    @app.cli.command("create-creator")
    @click.option("--name", required=True, help="Display name (e.g., 'Shan')")
    @click.option("--email", required=True, help="Login email")
    @click.option("--password", required=True, help="Login password")
    def create_creator_command(name, email, password):
        """Create the single Creator account"""
        session = get_session()
        try:
            success, message, user = create_user(session, name, email, password, ROLE_CREATOR)
            if success:
                click.echo(f"✅ {message}")
                click.echo("   Login URL: /creator-login")
            else:
                click.echo(f"❌ {message}")
        finally:
            session.close()

    @app.cli.command("create-user")
    @click.option("--name", required=True, help="Display name")
    @click.option("--email", required=True, help="Login email")
    @click.option("--password", required=True, help="Login password")
    @click.option("--role", required=True, type=click.Choice([r for r in ROLES if r != ROLE_CREATOR]),
                  help="Staff role")
    def create_user_command(name, email, password, role):
        """Create an admin, head or teacher account"""
        session = get_session()
        try:
            success, message, user = create_user(session, name, email, password, role)
            click.echo(f"✅ {message}" if success else f"❌ {message}")
        finally:
            session.close()

    @app.cli.command("list-users")
    @click.option("--role", type=click.Choice(list(ROLES)), help="Filter by role")
    def list_users_command(role):
        """List users in the system"""
        session = get_session()
        try:
            users = list_users(session, role)
            if not users:
                click.echo("📭 No users found")
                return

            click.echo(f"👥 Users ({len(users)}):")
            click.echo("-" * 60)
            for user in users:
                click.echo(f"  {user.name} <{user.email}>")
                click.echo(f"    Role: {user.role}")
                click.echo(f"    ID: {user.id}")
                click.echo("-" * 60)
        finally:
            session.close()

    @app.cli.command("set-default-leaves")
    @click.argument("days", type=int)
    def set_default_leaves_command(days):
        """Set the annual leave days given to new balances"""
        session = get_session()
        try:
            previous = get_system_default_leaves(session)
            success, message = set_system_default_leaves(session, days)
            if success:
                click.echo(f"✅ {message} (was {previous})")
            else:
                click.echo(f"❌ {message}")
        finally:
            session.close()

    @app.cli.command("maintenance")
    @click.argument("state", type=click.Choice(["on", "off", "status"]))
    def maintenance_command(state):
        """Turn maintenance mode on or off, or show it"""
        monitor = get_monitor(app)
        if state == "status":
            active = monitor.refresh()
            click.echo(f"🛠️  Maintenance mode is {'ON' if active else 'OFF'}")
            return

        success, message = monitor.set_active(state == "on")
        click.echo(f"✅ {message}" if success else f"❌ {message}")

    @app.cli.command("run-diagnostics")
    @click.option("--fix", is_flag=True, help="Apply automated fixes first")
    def run_diagnostics_command(fix):
        """Check AI settings, keys, model and role access"""
        session = get_session()
        try:
            diagnostics = AISystemDiagnostics(session)
            if fix:
                for result in diagnostics.run_automated_fixes():
                    click.echo(f"🔧 {result.component}: {result.message}")

            health = diagnostics.run_full_diagnostic()
            icons = {'pass': '✅', 'fail': '❌', 'warning': '⚠️ '}
            for result in health.results:
                click.echo(f"{icons.get(result.status, '•')} {result.component}: {result.message}")
            click.echo("-" * 60)
            click.echo(f"Overall: {health.overall.upper()}")
        finally:
            session.close()
