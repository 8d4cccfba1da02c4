import stripe # Stripe Python library for company subscriptions.
from flask import Flask, jsonify # The main Flask class.
from flask_migrate import Migrate # For handling database migrations with Flask-Migrate.
from config import Config # Import the application's configuration class.
from extensions import db, login_manager, oauth # Import initialized extensions.
from models.user import User # Import User model, primarily for the user_loader.
from utils.errors import register_error_handlers

# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.

    Args:
        config_class: Configuration object; tests pass a subclass of Config.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Initialize Stripe ---
    stripe.api_key = app.config['STRIPE_SECRET_KEY']

    # --- Initialize Flask Extensions ---
    db.init_app(app)
    Migrate(app, db)
    login_manager.init_app(app)
    oauth.init_app(app)

    # --- OAuth Client Registrations with Authlib ---
    # Used by /integrations/{google,meta}/connect to link ad accounts.

    # Google Ads API OAuth Integration.
    oauth.register(
        name='google_ads',
        client_id=app.config['GOOGLE_ADS_CLIENT_ID'],
        client_secret=app.config['GOOGLE_ADS_CLIENT_SECRET'],
        authorize_url='https://accounts.google.com/o/oauth2/v2/auth',
        access_token_url='https://oauth2.googleapis.com/token',
        refresh_token_url='https://oauth2.googleapis.com/token',
        client_kwargs={
            'scope': 'https://www.googleapis.com/auth/adwords', # Scope required for Google Ads API access.
        }
    )

    # Meta (Facebook) Ads API OAuth Integration, pinned to the configured Graph API version.
    meta_api_version = app.config.get('META_GRAPH_API_VERSION', 'v21.0')
    oauth.register(
        name='meta_ads',
        client_id=app.config['META_ADS_APP_ID'],
        client_secret=app.config['META_ADS_APP_SECRET'],
        authorize_url=f'https://www.facebook.com/{meta_api_version}/dialog/oauth',
        access_token_url=f'https://graph.facebook.com/{meta_api_version}/oauth/access_token',
        refresh_token_url=None, # Meta uses long-lived tokens, not standard refresh tokens here.
        client_kwargs={
            'scope': 'ads_management ads_read read_insights business_management',
            'token_endpoint_auth_method': 'client_secret_post',
        }
    )

    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    # --- Import and Register Blueprints ---
    from routes.auth import auth_bp
    from routes.users import users_bp
    from routes.company import company_bp
    from routes.admin import admin_bp, plans_bp
    from routes.platform_settings import platform_settings_bp
    from routes.integrations import integrations_bp
    from routes.webhooks import webhooks_bp
    from routes.campaigns import campaigns_bp, ad_sets_bp
    from routes.creatives import creatives_bp
    from routes.policies import policies_bp
    from routes.audits import audits_bp, audit_actions_bp
    from routes.dashboard import dashboard_bp
    from routes.reports import reports_bp
    from routes.objects import objects_bp
    from routes.billing import billing_bp

    for blueprint in (auth_bp, users_bp, company_bp, admin_bp, plans_bp, platform_settings_bp,
                      integrations_bp, webhooks_bp, campaigns_bp, ad_sets_bp, creatives_bp,
                      policies_bp, audits_bp, audit_actions_bp, dashboard_bp, reports_bp,
                      objects_bp, billing_bp):
        app.register_blueprint(blueprint)

    # --- Flask-Login User Loader ---
    @login_manager.user_loader
    def load_user(user_id):
        """Loads a user from the database given their ID."""
        return db.session.get(User, int(user_id))

    # API clients get a JSON 401 instead of a redirect to a login page.
    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    return app

# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
