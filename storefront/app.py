import asyncio
import logging
import time

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from quart import Quart, jsonify, request
from sqlalchemy.exc import OperationalError

from .admin.controller import bp as admin_bp
from .common.config import settings
from .common.database import init_db
from .common.errors import StorefrontError, TransientNetworkError
from .common.kafka_client import close_producer
from .common.redis_client import close_redis
from .menu.controller import bp as menu_bp
from .notifications.controller import bp as notifications_bp
from .orders.controller import bp as orders_bp
from .payments.worker import payments_worker
from .realtime.controller import bp as realtime_bp
from .users.controller import bp as profile_bp


log = logging.getLogger(__name__)

REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)


def _metrics_endpoint(path: str) -> str:
    # Group dynamic routes to keep label cardinality low
    if path.startswith("/orders/"):
        return "/orders/<id>/transition" if path.endswith("/transition") else "/orders/<id>"
    if path.startswith("/notifications/"):
        return "/notifications/<id>/read"
    if path.startswith("/menu/"):
        return "/menu/<id>"
    if path.startswith("/admin/users/"):
        return "/admin/users/<id>"
    return path


def create_app() -> Quart:
    app = Quart(__name__)

    # Blueprints
    app.register_blueprint(menu_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(realtime_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(profile_bp)

    @app.errorhandler(StorefrontError)
    async def storefront_error(error: StorefrontError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(OperationalError)
    async def database_unavailable(error: OperationalError):
        log.error("Database error: %s", error)
        return jsonify(TransientNetworkError("Storage is unavailable, please retry").to_dict()), 503

    @app.before_request
    async def before_request():
        request._start_time = time.time()
        log.info(f"[Instance {settings.INSTANCE_ID}] {request.method} {request.path}")

    @app.after_request
    async def after_request(response):
        try:
            if hasattr(request, "_start_time"):
                duration = time.time() - request._start_time
                endpoint = _metrics_endpoint(request.path)
                REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=endpoint,
                    status=str(response.status_code)
                ).inc()
                response.headers['X-Instance-ID'] = settings.INSTANCE_ID
        except Exception as e:
            log.error(f"Error recording metrics: {e}")
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.get("/")
    async def index():
        return jsonify({"service": "storefront", "instance": settings.INSTANCE_ID})

    @app.before_serving
    async def startup():
        logging.basicConfig(level=settings.LOG_LEVEL)
        log.info("Initializing database...")
        await init_db()
        log.info("Database ready.")
        app.background_tasks = getattr(app, "background_tasks", set())
        if not (settings.KAFKA_ENABLED and settings.PAYMENTS_WORKER_ENABLED):
            log.info("Payments worker disabled.")
            return
        stop_event = asyncio.Event()
        app._payments_stop = stop_event
        task = asyncio.create_task(payments_worker(stop_event))
        app.background_tasks.add(task)
        log.info("Payments worker started.")

    @app.after_serving
    async def shutdown():
        stop_event = getattr(app, "_payments_stop", None)
        if stop_event:
            stop_event.set()
        for t in getattr(app, "background_tasks", set()):
            try:
                await asyncio.wait_for(t, timeout=2.0)
            except Exception:
                t.cancel()
        await close_producer()
        await close_redis()
        log.info("Shutdown complete.")

    return app
