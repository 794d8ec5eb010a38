# Overview: Shared Flask-SQLAlchemy and Flask-Migrate instances, bound to the app in create_app().

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# SQLite cannot ALTER most constraints in place; batch mode rebuilds the table.
migrate = Migrate(render_as_batch=True)
