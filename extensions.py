from flask_sqlalchemy import SQLAlchemy # ORM for all tenant, ad and audit data.
from flask_login import LoginManager    # Cookie session handling for dashboard users.
from authlib.integrations.flask_client import OAuth # OAuth clients for connecting Meta and Google Ads accounts.

# Bound to the app in create_app() via db.init_app(app).
db = SQLAlchemy()

# Configured in create_app(); API routes answer 401 JSON instead of redirecting.
login_manager = LoginManager()

# 'meta_ads' and 'google_ads' clients are registered on this registry in create_app().
oauth = OAuth()
