# storefront/main.py
import logging
import time

from flask import Flask, request, session, jsonify, g, abort

from storefront.config import Config
from storefront.database import close_db, engine, SessionLocal
from storefront.models import Base
from storefront.blueprints.payments import payments_bp
from storefront.blueprints.shop import GATE_EXTENSION_KEY, shop_bp
from storefront.observability import (
    configure_logging,
    increment_counter,
    observe_latency,
    get_metrics_snapshot,
    check_admission_gate,
    check_database_health,
)
from storefront.observability.logging_config import ensure_request_id
from storefront.services.admission_gate import AdmissionGate
from storefront.services.shop_settings_service import ShopSettingsService

app = Flask(__name__)
Config.configure_app(app)
configure_logging(app)
app.register_blueprint(shop_bp)
app.register_blueprint(payments_bp)

# One gate per process; bounds concurrent status checks against the DB pool
app.extensions[GATE_EXTENSION_KEY] = AdmissionGate(max_slots=Config.SHOP_STATUS_MAX_CONCURRENT)

logger = logging.getLogger(__name__)


def init_database():
    """Create tables and make sure every weekday has an operating-hours row."""
    try:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            ShopSettingsService(db).ensure_default_operating_hours(
                Config.DEFAULT_OPEN_TIME, Config.DEFAULT_CLOSE_TIME
            )
        finally:
            db.close()
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.exception("Error initializing database: %s", e)


init_database()


@app.before_request
def before_request_logging():
    g.request_started_at = time.perf_counter()
    g.request_id = ensure_request_id()
    increment_counter(
        "http_requests_total",
        labels={
            "method": request.method,
            "endpoint": request.endpoint or request.path,
        },
    )


@app.after_request
def after_request_logging(response):
    started = getattr(g, 'request_started_at', None)
    labels = {
        "method": request.method,
        "endpoint": request.endpoint or request.path,
        "status": str(response.status_code),
    }
    if started is not None:
        observe_latency("http_request_latency_ms", (time.perf_counter() - started) * 1000, labels=labels)
    response.headers[Config.REQUEST_ID_HEADER] = g.get("request_id", "")
    if response.status_code >= 500:
        increment_counter("http_errors_total", labels=labels)
        logger.error("Request finished with error status %s", response.status_code)
    else:
        logger.info("Request finished", extra={"status_code": response.status_code})
    return response


@app.teardown_appcontext
def teardown_db(exception):
    close_db(exception)


@app.route('/health', methods=['GET'])
def health():
    db_status = check_database_health()
    overall = "UP" if db_status.get("status") == "UP" else "DEGRADED"
    status_code = 200 if overall == "UP" else 503
    return jsonify({
        "status": overall,
        "components": {
            "database": db_status,
            "shop_status_gate": check_admission_gate(app.extensions[GATE_EXTENSION_KEY]),
        }
    }), status_code


@app.route('/admin/metrics', methods=['GET'])
def admin_metrics():
    if not session.get("is_admin"):
        abort(403)
    return jsonify(get_metrics_snapshot())
