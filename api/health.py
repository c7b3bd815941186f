from flask import Blueprint
from sqlalchemy import text

from models import storage
from services.store import store_guard

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check (includes a session-store round trip)
    ---
    tags:
      - Health
    responses:
      200:
        description: API and session store are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Session store unavailable
    """
    with store_guard():
        storage.get_session().execute(text("SELECT 1"))
    return {"status": "ok", "version": "1.0.0"}, 200
