#just using this to load sample data into the db
from app import app
from models import db, Movie
from app_core.broadcast import get_broadcaster
from app_core.movies import create_movie

with app.app_context():
    db.drop_all(); db.create_all()
    rows = [
        ("The Matrix", "1999-04-02T21:00:00Z"),
        ("Inception", "2010-07-18T20:30:00Z"),
        ("Dune: Part One", None),
    ]
    for title, watched_at in rows:
        create_movie(title, watched_at, sink=get_broadcaster())
    print("Seeded:", Movie.query.count())
