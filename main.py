# main.py
"""
EduSync - role-based school operations dashboard
Creator, Admin, Head and Teacher dashboards served as JSON blueprints
"""

import atexit
import os
import importlib
import sys
import logging
from flask import Flask, request, redirect, jsonify
from flask_login import LoginManager, current_user

# Ensure project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# --- local modules ---
from config import get_config_class
from db_single import init_database, EXTENSION_KEY as DB_EXTENSION_KEY
from models import User, ROLE_CREATOR
from maintenance import MaintenanceMonitor, EXTENSION_KEY as MAINTENANCE_EXTENSION_KEY
from ai_assistant import CONFIG_EXTENSION_KEY, TRANSPORT_EXTENSION_KEY
from cli_commands import register_cli_commands

MAINTENANCE_MESSAGE = (
    "Oops, looks like we're under maintenance. "
    "My creator is working on improvements or bug fixes. Please check back soon!"
)

# Reachable while maintenance mode is on
MAINTENANCE_OPEN_PATHS = {
    "/login",
    "/creator-login",
    "/logout",
    "/maintenance",
    "/api/config",
    "/api/me",
}

UPCOMING_FEATURES = [
    {"section": "📆 Academic & Scheduling Features", "items": ["Timetable Builder", "Attendance Tracking"]},
    {"section": "📝 Student & Class Management",
     "items": ["Student Records Module", "Class Roster & Subject Grouping"]},
    {"section": "🧾 Communication & Notifications", "items": ["Internal Messaging System", "Push Notifications"]},
    {"section": "📊 Reporting & Analytics", "items": ["Performance Analytics Dashboard", "Audit Logs"]},
    {"section": "🏫 Parent/Guardian Access (Optional Future Phase)", "items": ["Parent Portal"]},
    {"section": "🔐 Security & Controls",
     "items": ["Activity Logs / Session History", "Granular Role Permissions"]},
    {"section": "🛠 Platform Enhancements", "items": ["Dark Mode Toggle", "Offline Mode with Sync", "Form Builder"]},
    {"section": "👨‍🏫 Teacher Tools", "items": ["Lesson Planner", "Student Feedback Loop"]},
]


def create_app(config_name=None, database=None, ai_transport=None) -> Flask:
    """
    Build the EduSync app.

    database: an already-built db_single.Database (tests pass one in);
              otherwise one is created from the config.
    ai_transport: optional callable (api_key, model, messages) -> str used
                  instead of the OpenRouter HTTP call.
    """
    config_obj = get_config_class(config_name)()

    app = Flask(__name__)
    app.config.from_object(config_obj)

    # Logging
    logging.basicConfig(level=getattr(logging, str(config_obj.LOG_LEVEL).upper(), logging.INFO))
    logger = logging.getLogger(__name__)

    # DB init
    database = database or init_database(config_obj)
    app.extensions[DB_EXTENSION_KEY] = database
    app.extensions[CONFIG_EXTENSION_KEY] = config_obj
    app.extensions[TRANSPORT_EXTENSION_KEY] = ai_transport

    verbose = not app.config.get("TESTING")
    if verbose:
        print("\n" + "=" * 60)
        print("STARTING APPLICATION - Database Integrity Check")
        print("=" * 60)
    try:
        from init_db import run_on_startup
        if not run_on_startup(database, config_obj, verbose=verbose):
            print("[WARNING] Database initialization had issues!")
            print("Application will continue but may not work correctly.")
    except Exception as e:
        print(f"[WARNING] Could not run database initialization: {e}")
        print("Application will continue with existing database state.")
    if verbose:
        print("=" * 60 + "\n")

    # Maintenance flag cache
    monitor = MaintenanceMonitor(database, config_obj.MAINTENANCE_POLL_SECONDS)
    app.extensions[MAINTENANCE_EXTENSION_KEY] = monitor
    try:
        monitor.refresh()
    except Exception as e:
        logger.error(f"❌ Could not read maintenance flag: {e}")

    # Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        s = database.session()
        try:
            return s.get(User, user_id)
        except Exception as e:
            logger.error(f"user_loader error: {e}")
            return None
        finally:
            s.close()

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "Authentication required"}), 401

    # CLI
    register_cli_commands(app)

    # Blueprints
    blueprints = [
        ("auth_routes", "auth_bp", None, "Auth"),
        ("creator_routes", "creator_bp", "/creator", "Creator"),
        ("admin_routes", "admin_bp", "/admin", "Admin"),
        ("head_routes", "head_bp", "/head", "Head"),
        ("head_routes", "reports_bp", None, "Reports"),
        ("teacher_routes", "teacher_bp", "/teacher", "Teacher"),
        ("announcement_routes", "announcement_bp", "/api", "Announcements"),
        ("chat_routes", "chat_bp", "/api/ai", "AI chat"),
    ]
    for module_name, attr, url_prefix, label in blueprints:
        try:
            module = importlib.import_module(module_name)
            app.register_blueprint(getattr(module, attr), url_prefix=url_prefix)
            logger.info(f"✅ {label} blueprint registered")
        except Exception as e:
            logger.error(f"❌ {label} blueprint failed: {e}")

    @app.before_request
    def maintenance_gate():
        if not monitor.is_active:
            return None
        if request.path in MAINTENANCE_OPEN_PATHS or request.path.startswith("/static"):
            return None
        if current_user.is_authenticated and current_user.role == ROLE_CREATOR:
            return None
        return jsonify({
            "success": False,
            "maintenance": True,
            "error": MAINTENANCE_MESSAGE,
        }), 503

    @app.route("/")
    def index():
        return redirect("/login")

    @app.route("/maintenance")
    def maintenance_status():
        return jsonify({
            "success": True,
            "maintenance": monitor.is_active,
            "message": MAINTENANCE_MESSAGE if monitor.is_active else None,
        })

    @app.route("/upcoming-features")
    def upcoming_features():
        return jsonify({"success": True, "features": UPCOMING_FEATURES})

    @app.route("/api/config")
    def client_config():
        return jsonify({
            "success": True,
            "refresh_seconds": app.config["DASHBOARD_REFRESH_SECONDS"],
            "class_start_window_minutes": app.config["CLASS_START_WINDOW_MINUTES"],
            "creator_contact": app.config["CREATOR_CONTACT"],
            "maintenance": monitor.is_active,
        })

    @app.errorhandler(404)
    def nf(_):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def ie(_):
        return jsonify({"success": False, "error": "Internal error. Please contact Creator - Shan"}), 500

    # ===== OPTIONAL: Start background maintenance watcher =====
    # Enable with MAINTENANCE_WATCHER_ENABLED=1 when several workers share the database
    if config_obj.MAINTENANCE_WATCHER_ENABLED:
        try:
            monitor.start_watcher()
            atexit.register(monitor.stop_watcher)
            logger.info(f"✅ Maintenance watcher started (interval: {monitor.poll_seconds}s)")
        except Exception as e:
            logger.error(f"❌ Failed to start maintenance watcher: {e}")

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=5000, use_reloader=False)
