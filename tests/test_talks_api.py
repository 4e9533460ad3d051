"""Tests for the talk catalog endpoints and SQL repository."""

import pytest
from fastapi.testclient import TestClient

from tedtalks.errors import TalkNotFoundError
from tedtalks.main import create_app
from tedtalks.storage.sql import SqlTalkRepository, create_db_engine
from tedtalks.talks.models import TalkRequest


def _talk(title, author, year=2020, month=1, views=0):
    return TalkRequest(
        title=title,
        author=author,
        year=year,
        month=month,
        views=views,
        link=f"https://ted.com/{title.lower().replace(' ', '_')}",
    )


CATALOG = [
    _talk("The power of vulnerability", "Brene Brown", 2010, 6),
    _talk("Listening to shame", "Brene Brown", 2012, 3),
    _talk("How great leaders inspire action", "Simon Sinek", 2009, 9),
    _talk("Why we do what we do", "Tony Robbins", 2006, 2),
    _talk("Powerful questions", "Someone Else", 2010, 1),
]


@pytest.fixture
def seeded(talk_repository):
    talk_repository.create_many(CATALOG)
    return talk_repository


class TestSqlTalkRepository:
    def test_ids_are_assigned(self, seeded):
        page = seeded.search()
        assert [t.id for t in page.items] == sorted(t.id for t in page.items)
        assert page.total_elements == 5

    def test_get(self, seeded):
        first = seeded.search(size=1).items[0]
        assert seeded.get(first.id) == first

    def test_get_unknown(self, seeded):
        with pytest.raises(TalkNotFoundError):
            seeded.get(9999)

    def test_author_prefix_is_case_insensitive(self, seeded):
        page = seeded.search(author="brene")
        assert {t.title for t in page.items} == {
            "The power of vulnerability",
            "Listening to shame",
        }

    def test_author_filter_is_a_prefix_not_substring(self, seeded):
        assert seeded.search(author="Brown").total_elements == 0

    def test_year_filter(self, seeded):
        page = seeded.search(year=2010)
        assert page.total_elements == 2

    def test_keyword_matches_title_or_author_prefix(self, seeded):
        titles = {t.title for t in seeded.search(keyword="pow").items}
        assert titles == {"Powerful questions"}
        titles = {t.title for t in seeded.search(keyword="simon").items}
        assert titles == {"How great leaders inspire action"}

    def test_pagination(self, seeded):
        page = seeded.search(page=1, size=2)
        assert page.page == 1
        assert page.size == 2
        assert len(page.items) == 2
        assert page.total_elements == 5
        assert page.total_pages == 3

    def test_empty_batch_is_a_noop(self, talk_repository):
        talk_repository.create_many([])
        assert talk_repository.search().total_elements == 0

    def test_create_assigns_an_id(self, talk_repository):
        talk = talk_repository.create(_talk("New talk", "New Speaker", 2023, 4))
        assert talk.id >= 1
        assert talk_repository.get(talk.id) == talk

    def test_update_replaces_every_field(self, seeded):
        first = seeded.search(size=1).items[0]
        replacement = _talk("Renamed", "Other Person", 2015, 11, views=42)

        updated = seeded.update(first.id, replacement)

        assert updated.id == first.id
        assert updated.model_dump(exclude={"id"}) == replacement.model_dump()
        assert seeded.get(first.id) == updated
        assert seeded.search().total_elements == 5

    def test_update_unknown(self, seeded):
        with pytest.raises(TalkNotFoundError):
            seeded.update(9999, _talk("x", "y"))

    def test_delete(self, seeded):
        first = seeded.search(size=1).items[0]
        seeded.delete(first.id)
        with pytest.raises(TalkNotFoundError):
            seeded.get(first.id)
        assert seeded.search().total_elements == 4

    def test_delete_unknown(self, seeded):
        with pytest.raises(TalkNotFoundError):
            seeded.delete(9999)

    def test_like_wildcards_in_filters_are_literal(self, talk_repository):
        talk_repository.create_many([
            _talk("100% pure", "A_B"),
            _talk("100 reasons", "AxB"),
        ])
        assert [t.title for t in talk_repository.search(keyword="100%").items] == ["100% pure"]
        assert [t.author for t in talk_repository.search(author="A_").items] == ["A_B"]


@pytest.fixture
def client(app_settings):
    engine = create_db_engine(app_settings.database_url)
    SqlTalkRepository(engine).create_many(CATALOG)
    engine.dispose()
    with TestClient(create_app(app_settings)) as test_client:
        yield test_client


class TestTalksApi:
    def test_list(self, client):
        body = client.get("/api/v1/talks").json()
        assert body["total_elements"] == 5
        assert body["size"] == 20
        assert body["items"][0]["title"] == "The power of vulnerability"

    def test_filters(self, client):
        body = client.get("/api/v1/talks", params={"author": "brene", "year": 2012}).json()
        assert [t["title"] for t in body["items"]] == ["Listening to shame"]

    def test_size_is_capped(self, client):
        body = client.get("/api/v1/talks", params={"size": 1000}).json()
        assert body["size"] == 100

    def test_negative_page_is_rejected(self, client):
        assert client.get("/api/v1/talks", params={"page": -1}).status_code == 422

    def test_get_one(self, client):
        first = client.get("/api/v1/talks", params={"size": 1}).json()["items"][0]
        body = client.get(f"/api/v1/talks/{first['id']}").json()
        assert body == first

    def test_get_unknown(self, client):
        response = client.get("/api/v1/talks/424242")
        assert response.status_code == 404
        assert response.json()["type"] == "urn:ted-talks:resource-not-found"

    def test_create(self, client):
        payload = {
            "title": "  A new idea ",
            "author": "Jane Doe",
            "year": 2024,
            "month": 2,
            "link": "https://ted.com/new_idea",
        }
        response = client.post("/api/v1/talks", json=payload)
        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "A new idea"
        assert body["views"] == 0
        assert client.get(f"/api/v1/talks/{body['id']}").json() == body
        assert client.get("/api/v1/talks").json()["total_elements"] == 6

    def test_create_rejects_invalid_body(self, client):
        response = client.post("/api/v1/talks", json={"title": "x", "month": 13})
        assert response.status_code == 422

    def test_update(self, client):
        first = client.get("/api/v1/talks", params={"size": 1}).json()["items"][0]
        payload = dict(first, title="Retitled", views=7)
        del payload["id"]

        response = client.put(f"/api/v1/talks/{first['id']}", json=payload)

        assert response.status_code == 200
        assert response.json() == dict(first, title="Retitled", views=7)

    def test_update_unknown(self, client):
        payload = {"title": "x", "author": "y", "year": 2020, "month": 1, "link": "l"}
        response = client.put("/api/v1/talks/424242", json=payload)
        assert response.status_code == 404

    def test_delete(self, client):
        first = client.get("/api/v1/talks", params={"size": 1}).json()["items"][0]

        response = client.delete(f"/api/v1/talks/{first['id']}")

        assert response.status_code == 204
        assert response.content == b""
        assert client.get(f"/api/v1/talks/{first['id']}").status_code == 404
        assert client.delete(f"/api/v1/talks/{first['id']}").status_code == 404
