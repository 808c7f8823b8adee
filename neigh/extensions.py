from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_mail import Mail
from sqlalchemy import MetaData

# Named constraints keep Alembic autogenerate stable across sqlite/postgres
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

db = SQLAlchemy(metadata=MetaData(naming_convention=NAMING_CONVENTION))
# sqlite needs batch mode for ALTER TABLE
migrate = Migrate(render_as_batch=True)
login_manager = LoginManager()
login_manager.session_protection = "basic"
csrf = CSRFProtect()
mail = Mail()
