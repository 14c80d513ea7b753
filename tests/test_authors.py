from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def _create_book(title, authors):
    r = client.post("/books", json={
        "title": title,
        "pageCount": 100,
        "publishedDate": "2020-01-01T00:00:00",
        "thumbnailUrl": "https://example.com/t.jpg",
        "shortDescription": "corta",
        "longDescription": "larga",
        "status": "PUBLISH",
        "authors": authors,
    })
    assert r.status_code == 200
    return r.json()


def test_get_authors_returns_list():
    r = client.get("/authors")
    assert r.status_code == 200
    assert r.json() == []


def test_get_author_with_books():
    first = _create_book("Uno", ["Ada Lovelace"])
    second = _create_book("Dos", ["Ada Lovelace", "Charles Babbage"])

    authors = client.get("/authors").json()
    ada = next(a for a in authors if a["name"] == "Ada Lovelace")

    r = client.get(f"/authors/{ada['id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Ada Lovelace"
    assert sorted(b["id"] for b in body["books"]) == sorted([first["id"], second["id"]])


def test_orphaned_author_remains_after_update():
    book = _create_book("Uno", ["A"])
    r = client.put(f"/books/{book['id']}", json={
        "title": "Uno",
        "pageCount": 100,
        "publishedDate": "2020-01-01T00:00:00",
        "thumbnailUrl": "https://example.com/t.jpg",
        "shortDescription": "corta",
        "longDescription": "larga",
        "status": "PUBLISH",
        "authors": ["B"],
    })
    assert r.status_code == 200

    a = next(x for x in client.get("/authors").json() if x["name"] == "A")
    r2 = client.get(f"/authors/{a['id']}")
    assert r2.status_code == 200
    assert r2.json()["books"] == []


def test_get_author_404():
    r = client.get("/authors/999999999")
    assert r.status_code == 404
    assert r.json()["detail"] == "Author not found"
