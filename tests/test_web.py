import os, sys, pytest

# allow importing the app package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from models import db, Movie

@pytest.fixture()
def web_client(tmp_path):
    # isolated app for web routes
    os.environ["SECRET_KEY"] = "test"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path/'web.db'}",
    })
    with app.app_context():
        db.drop_all(); db.create_all()
    c = app.test_client()
    yield app, c
    with app.app_context():
        db.session.remove()
        db.engine.dispose()

def test_index_page_renders(web_client):
    app, c = web_client
    r = c.get("/")
    assert r.status_code == 200
    assert b"MovieFeed" in r.data
    assert b'id="movies"' in r.data
    assert b"No movies yet." in r.data
    assert b"/api/movies/stream" in r.data

def test_form_create_lists_and_broadcasts(web_client):
    app, c = web_client
    with app.extensions["broadcaster"].subscribe("movies") as sub:
        r = c.post("/movies", data={"title": "Heat", "watched_at": "2024-02-10T20:30"}, follow_redirects=True)
        assert r.status_code == 200
        assert b"Added Heat." in r.data
        assert b"Heat" in r.data
        assert b"watched 2024-02-10 20:30" in r.data

        msg = sub.get(timeout=0.1)
        assert msg.action == "prepend"
        assert "Heat" in msg.payload["html"]

def test_form_create_untitled(web_client):
    app, c = web_client
    r = c.post("/movies", data={"title": ""}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Added untitled movie." in r.data
    assert b"not watched yet" in r.data

def test_form_create_bad_timestamp_flashes(web_client):
    app, c = web_client
    r = c.post("/movies", data={"title": "X", "watched_at": "garbage"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"ISO 8601" in r.data
    with app.app_context():
        assert Movie.query.count() == 0

def test_form_delete(web_client):
    app, c = web_client
    c.post("/movies", data={"title": "Gone Girl"})
    with app.app_context():
        mid = Movie.query.one().id

    r = c.post(f"/movies/{mid}/delete", follow_redirects=True)
    assert r.status_code == 200
    assert b"Movie deleted." in r.data
    with app.app_context():
        assert Movie.query.count() == 0

def test_form_delete_missing(web_client):
    app, c = web_client
    r = c.post("/movies/12345/delete")
    assert r.status_code == 404

def test_form_delete_when_store_down_flashes(web_client, monkeypatch):
    from sqlalchemy.exc import OperationalError
    app, c = web_client
    c.post("/movies", data={"title": "Stays"})
    with app.app_context():
        mid = Movie.query.one().id

    def boom():
        raise OperationalError("DELETE FROM movies", {}, Exception("database is locked"))
    monkeypatch.setattr(db.session, "commit", boom)

    r = c.post(f"/movies/{mid}/delete")
    assert r.status_code == 302
    monkeypatch.undo()

    r = c.get("/")
    assert b"The movie store is unavailable" in r.data
    assert b"Stays" in r.data
    with app.app_context():
        assert Movie.query.count() == 1
