import os
import sys
from urllib.parse import quote_plus
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
import dotenv
from flask import Flask, jsonify
import logging
from flask_migrate import Migrate

from sponsor_portal.auth import init_request_state
from sponsor_portal.config import apply_to_app, validate_settings
from sponsor_portal.errors import register_error_handlers
from sponsor_portal.extensions import limiter
from sponsor_portal.models import content  # noqa: F401  (registers peripheral tables with Migrate)
from sponsor_portal.models.portal import db
from sponsor_portal.routes.admin import admin_bp
from sponsor_portal.routes.cron import cron_bp
from sponsor_portal.routes.invitations import invitations_bp
from sponsor_portal.routes.public import auth_callback_bp, public_bp
from sponsor_portal.routes.slack import slack_bp
from sponsor_portal.routes.sponsor_admin import sponsor_admin_bp

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

dotenv.load_dotenv()

logger.info("Starting sponsor portal API...")

app = Flask(__name__)
app.config['SECRET_KEY'] = os.getenv('SECRET_KEY')

settings = apply_to_app(app)
ok, missing = validate_settings(settings)
if not ok:
    logger.warning("Missing required settings: %s", ', '.join(missing))
logger.info("Service role key configured: %s", 'Yes' if settings.supabase_service_role_key else 'No')

for blueprint in (admin_bp, sponsor_admin_bp, invitations_bp, slack_bp, cron_bp, public_bp):
    app.register_blueprint(blueprint, url_prefix='/api')
app.register_blueprint(auth_callback_bp)
register_error_handlers(app)
init_request_state(app)
limiter.init_app(app)

# Database setup
# DATABASE_URL wins (tests, local sqlite); otherwise build the Supabase Postgres URI from parts
database_url = os.getenv("DATABASE_URL")

if database_url:
    db_uri = database_url
    logger.info("Using DATABASE_URL")
else:
    host = os.getenv("DB_HOST")
    if not host:
        raise RuntimeError("Set DATABASE_URL or DB_HOST/DB_USER/DB_PASSWORD/DB_NAME")
    pwd     = quote_plus(os.getenv("DB_PASSWORD") or "")
    user    = os.getenv("DB_USER", "postgres")
    port    = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_NAME", "postgres")

    db_uri = f"postgresql+psycopg://{user}:{pwd}@{host}:{port}/{db_name}"
    logger.info("Using PostgreSQL components: host=%s db=%s", host, db_name)

app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
db.init_app(app)


@app.route('/api/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'settings_complete': ok})


migrate = Migrate(app, db)

if __name__ == "__main__":
    # Only run when you execute `python sponsor_portal/main.py`,
    # NOT when Flask CLI imports the app.
    with app.app_context():
        logger.info("Creating database tables...")
        db.create_all()

    app.run(host="0.0.0.0", port=5001, debug=True)
