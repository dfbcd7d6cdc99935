from flask import Blueprint, render_template, request, redirect, url_for, flash
from werkzeug.exceptions import HTTPException
from models import db, Movie
from .broadcast import get_broadcaster
from .movies import create_movie, delete_movie

web_bp = Blueprint("web", __name__)

@web_bp.get("/")
def html_index():
    movies = Movie.query.order_by(Movie.created_at.desc(), Movie.id.desc()).all()
    return render_template("index.html", movies=movies)

@web_bp.post("/movies")
def html_create():
    try:
        m = create_movie(
            request.form.get("title"),
            request.form.get("watched_at") or None,
            sink=get_broadcaster(),
        )
    except HTTPException as e:
        flash(e.description, "error")
        return redirect(url_for("web.html_index"))
    flash(f"Added {m.title or 'untitled movie'}.", "success")
    return redirect(url_for("web.html_index"))

@web_bp.post("/movies/<int:movie_id>/delete")
def html_delete(movie_id):
    m = db.get_or_404(Movie, movie_id)
    try:
        delete_movie(m, sink=get_broadcaster())
    except HTTPException as e:
        flash(e.description, "error")
        return redirect(url_for("web.html_index"))
    flash("Movie deleted.", "success")
    return redirect(url_for("web.html_index"))
