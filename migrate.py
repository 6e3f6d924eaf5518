"""
Apply database migrations without starting the web server.

Usage:
  python migrate.py

This script uses Flask-Migrate (Alembic) to create the roster table, the
per-department counter tables and the increment function.
"""

import sys


def main():
    from exit_survey import create_app, load_settings
    from flask_migrate import upgrade

    try:
        settings = load_settings()
    except RuntimeError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    app = create_app(settings=settings)
    try:
        print("Applying database migrations...")
        with app.app_context():
            upgrade(directory='migrations')
        print("✓ Migrations completed successfully.")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
