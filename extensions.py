"""
extensions.py - Shared Flask Extensions
Unbound extension objects for UniTrack. models.py and the blueprints import
them from here; create_app() binds them to an app with init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_bcrypt import Bcrypt

# Database ORM holding users, profiles, grading scales, semesters and modules
db = SQLAlchemy()

# Schema migrations
# Usage: flask db init, flask db migrate, flask db upgrade
migrate = Migrate()

# Login sessions; every record is scoped to current_user
login_manager = LoginManager()

# Password hashing
bcrypt = Bcrypt()
