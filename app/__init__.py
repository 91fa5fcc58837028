"""
Prayer Request Manager - Application Factory
"""
import logging
import os

import click
from flask import Flask, request
from dotenv import load_dotenv

from app.extensions import db, babel
from app.errors import register_error_handlers
from app.routes import register_blueprints
from app.services.prayer_service import category_style
from config.settings import config


def get_locale():
    """Determine the best locale for the user."""
    lang = request.cookies.get('babel_translation')
    if lang:
        return lang
    return request.accept_languages.best_match(['en', 'es'])


def create_app(config_name=None):
    """Application Factory."""
    load_dotenv()

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    babel.init_app(app, locale_selector=get_locale)

    # Context processor for templates
    @app.context_processor
    def inject_conf_var():
        return dict(get_locale=get_locale, category_style=category_style)

    # Register blueprints
    register_blueprints(app)
    register_error_handlers(app)

    # CLI Commands
    register_cli_commands(app)

    return app


def configure_logging(app):
    level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('app').setLevel(level)
    app.logger.setLevel(level)


def register_cli_commands(app):
    """Register CLI commands."""

    @app.cli.command("init-db")
    def init_db_command():
        """Creates database tables and seeds permissions."""
        from app.services.auth_service import seed_permissions
        db.create_all()
        seed_permissions()
        click.echo("Initialized the database.")

    @app.cli.command("seed-permissions")
    def seed_permissions_command():
        """Creates the default permission catalogue and role grants."""
        from app.services.auth_service import seed_permissions
        seed_permissions()
        click.echo("Permissions seeded.")

    @app.cli.command("create-superadmin")
    @click.argument("username")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--email", default=None)
    def create_superadmin_command(username, password, email):
        """Provisions a super admin account."""
        from app.errors import Conflict, ValidationError
        from app.services.user_service import create_user
        try:
            user = create_user(
                {'username': username, 'password': password, 'email': email, 'role': 'super_admin'},
                created_by=None,
            )
        except (ValidationError, Conflict) as error:
            raise click.ClickException(error.message)
        click.echo(f"Created super admin {user.username} (id {user.id}).")

    @app.cli.command("cleanup-sessions")
    def cleanup_sessions_command():
        """Deletes expired sessions and password reset tokens."""
        from app.services.auth_service import cleanup_expired_sessions, purge_expired_reset_tokens
        sessions = cleanup_expired_sessions()
        tokens = purge_expired_reset_tokens()
        click.echo(f"Removed {sessions} expired sessions and {tokens} expired reset tokens.")

    @app.cli.command("import-csv")
    @click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
    @click.option("--importer", required=True, help="Username recorded as the importer.")
    def import_csv_command(csv_file, importer):
        """Imports prayer requests from a CSV file."""
        from app.models import User
        from app.services.import_service import import_csv
        user = User.query.filter_by(username=importer).first()
        if user is None:
            raise click.ClickException(f"Unknown user: {importer}")
        with open(csv_file, encoding='utf-8-sig') as fh:
            result = import_csv(fh.read(), user.id, filename=os.path.basename(csv_file))
        click.echo(f"Imported {result.success_count} rows, {result.failed_count} failed.")
        for message in result.errors:
            click.echo(f"  {message}")
