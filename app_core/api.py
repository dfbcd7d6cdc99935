from flask import Blueprint, Response, current_app, request
from models import db, Movie
from .broadcast import MOVIES_CHANNEL, get_broadcaster
from .errors import expect_json, read_json, validate_pagination, require_auth
from .movies import movie_to_dict, create_movie, update_movie, delete_movie
from .query_utils import build_movie_query

api_bp = Blueprint("api", __name__, url_prefix="/api")  # blueprint for API routes

@api_bp.get("/health")
def health():
    return {"ok": True}

@api_bp.get("/movies")
def list_movies():
    page, page_size = validate_pagination()
    qry = build_movie_query(request.args)
    total = qry.count()
    items = qry.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "items": [movie_to_dict(m) for m in items],
    }

@api_bp.post("/movies")
@require_auth
def create_movie_route():
    expect_json()
    data = read_json()
    m = create_movie(data.get("title"), data.get("watched_at"), sink=get_broadcaster())
    return movie_to_dict(m), 201

@api_bp.get("/movies/<int:movie_id>")
def get_movie(movie_id):
    m = db.get_or_404(Movie, movie_id)
    return movie_to_dict(m)

@api_bp.put("/movies/<int:movie_id>")
@api_bp.patch("/movies/<int:movie_id>")
@require_auth
def update_movie_route(movie_id):
    expect_json()
    data = read_json()
    m = db.get_or_404(Movie, movie_id)
    update_movie(m, data, sink=get_broadcaster())
    return movie_to_dict(m)

@api_bp.delete("/movies/<int:movie_id>")
@require_auth
def delete_movie_route(movie_id):
    m = db.get_or_404(Movie, movie_id)
    delete_movie(m, sink=get_broadcaster())
    return {"deleted": movie_id}

@api_bp.get("/movies/stream")
def stream_movies():
    """
    Server-Sent Events feed of the movies channel.
    The subscription is taken here, before the first chunk goes out, so nothing
    published after the response starts is missed.
    """
    keepalive = float(current_app.config["BROADCAST_KEEPALIVE_SECONDS"])
    sub = get_broadcaster().subscribe(MOVIES_CHANNEL)

    def events():
        try:
            yield ": connected\n\n"
            while True:
                msg = sub.get(timeout=keepalive)
                if msg is None:
                    yield ": keep-alive\n\n"
                else:
                    yield msg.to_sse()
        finally:
            sub.close()

    resp = Response(events(), mimetype="text/event-stream")
    resp.call_on_close(sub.close)
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["X-Accel-Buffering"] = "no"
    return resp
