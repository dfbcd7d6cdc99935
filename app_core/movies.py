"""
Movie lifecycle operations.

Every mutation commits first and only then tells the sink about it, so a
failed write can never produce a notification.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from flask import render_template
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from models import db, Movie, utcnow
from .broadcast import MOVIES_CHANNEL
from .errors import ValidationError, PersistenceError, validate_title, parse_timestamp

log = logging.getLogger(__name__)


def _iso(ts):
    return ts.isoformat() if ts else None

def movie_to_dict(m: Movie) -> Dict[str, Any]:
    return {
        "id": m.id,
        "title": m.title,
        "watched_at": _iso(m.watched_at),
        "created_at": _iso(m.created_at),
        "updated_at": _iso(m.updated_at),
    }

def render_movie(m: Movie) -> Dict[str, Any]:
    """Everything a subscriber needs to show the row without fetching it."""
    return {
        "id": m.id,
        "target": MOVIES_CHANNEL,
        "html": render_template("movies/_movie.html", movie=m),
        "movie": movie_to_dict(m),
    }


def _commit(action: str, build_payload: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """
    Flush, build the notification payload, then commit. Nothing touches the
    store between the commit and the caller's publish.
    """
    try:
        db.session.flush()
        payload = build_payload()
        db.session.commit()
    except (IntegrityError, DataError) as e:
        db.session.rollback()
        log.info("store rejected movie %s: %s", action, e.orig)
        raise ValidationError("movie rejected by the store")
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("movie %s failed", action)
        raise PersistenceError()
    except Exception:
        db.session.rollback()
        raise
    return payload


def create_movie(title: Optional[str] = None, watched_at=None, *, sink) -> Movie:
    title = validate_title(title)
    watched_at = parse_timestamp(watched_at)

    now = utcnow()
    m = Movie(title=title, watched_at=watched_at, created_at=now, updated_at=now)
    db.session.add(m)
    payload = _commit("create", lambda: render_movie(m))

    log.info("created movie %s", payload["id"])
    sink.publish(MOVIES_CHANNEL, "prepend", payload)
    return m


def update_movie(m: Movie, fields: Mapping[str, Any], *, sink) -> Movie:
    # validate everything before touching the row
    changes = {}
    if "title" in fields:
        changes["title"] = validate_title(fields.get("title"))
    if "watched_at" in fields:
        changes["watched_at"] = parse_timestamp(fields.get("watched_at"))
    changed = False
    for k, v in changes.items():
        if getattr(m, k) != v:
            setattr(m, k, v)
            changed = True

    if changed:
        movie_id = m.id
        payload = _commit("update", lambda: {"id": movie_id})
        sink.publish(MOVIES_CHANNEL, "refresh", payload)
    return m


def delete_movie(m: Movie, *, sink) -> int:
    movie_id = m.id
    db.session.delete(m)
    payload = _commit("delete", lambda: {"id": movie_id})
    sink.publish(MOVIES_CHANNEL, "refresh", payload)
    return movie_id
