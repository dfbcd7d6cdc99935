from flask import Request
from .errors import validate_order_param
from models import Movie

def build_movie_query(req_args: Request.args.__class__):
    qry = Movie.query

    q = (req_args.get("q") or "").strip()
    watched = req_args.get("watched")
    order = validate_order_param()

    if q:
        qry = qry.filter(Movie.title.ilike(f"%{q}%"))
    if watched == "true":
        qry = qry.filter(Movie.watched_at.is_not(None))
    elif watched == "false":
        qry = qry.filter(Movie.watched_at.is_(None))

    if order == "title":
        qry = qry.order_by(Movie.title.asc().nulls_last(), Movie.id.asc())
    elif order == "-watched_at":
        qry = qry.order_by(Movie.watched_at.desc().nulls_last(), Movie.id.desc())
    elif order == "created_at":
        qry = qry.order_by(Movie.created_at.asc(), Movie.id.asc())
    else:
        qry = qry.order_by(Movie.created_at.desc(), Movie.id.desc())

    return qry
