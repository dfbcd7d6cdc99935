from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

# rows stay readable after commit without another round trip
db = SQLAlchemy(session_options={"expire_on_commit": False})


def utcnow() -> datetime:
    # naive UTC, matches what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _same_as_created(ctx):
    return ctx.get_current_parameters().get("created_at") or utcnow()


class Movie(db.Model): #movie model
    __tablename__ = "movies"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=True, index=True)
    watched_at = db.Column(db.DateTime, nullable=True)   # null = not watched yet
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=_same_as_created, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Movie {self.id} {self.title!r}>" #rep of the movie object
