"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_HEAVY_LIMIT = "60/minute"
READ_HEAVY_LIMIT = "200/minute"

# Blueprints whose routes mostly mutate documents / tasks / comments
WRITE_HEAVY_BLUEPRINTS = ("document", "collaboration", "settings")

# Dashboard-style blueprints polled by the UI
READ_HEAVY_BLUEPRINTS = ("compliance",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Document / collaboration / settings:  60/minute
        - Compliance dashboard:                 200/minute
        - Health check:                         exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_HEAVY_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_HEAVY_LIMIT)(bp)

    for bp_name in READ_HEAVY_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_HEAVY_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured (write=%s, read=%s)", WRITE_HEAVY_LIMIT, READ_HEAVY_LIMIT,
    )
