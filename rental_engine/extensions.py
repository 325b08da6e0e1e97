"""
Engine registration on the Flask app.
The engine is created in create_app() and looked up per request from
`current_app.extensions`, so each app (and each test) has its own.
"""

from flask import current_app

EXTENSION_KEY = "rental_engine"


def init_engine(app, engine):
    app.extensions[EXTENSION_KEY] = engine
    return engine


def get_engine():
    """Return the ReservationEngine bound to the current app."""
    return current_app.extensions[EXTENSION_KEY]
