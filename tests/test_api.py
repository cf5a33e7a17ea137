from fastapi.testclient import TestClient

from craftdb import main
from craftdb.repo.recipes import RecipeRegistry
from craftdb.settings import settings
from craftdb.store.adapter import Store
from craftdb.store.errors import StoreError


def _client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "api.sqlite3"))
    return TestClient(main.app)


TORCH = {
    "product": {"entity": {"name": "torch", "max_stack": 64}, "number": 4},
    "materials": [
        {"entity": {"name": "stick"}, "number": 1},
        {"entity": {"name": "coal"}, "number": 1},
    ],
}


class BrokenHashesStore(Store):
    async def execute(self, sql, params=()):
        if sql.startswith("INSERT INTO hashes"):
            raise StoreError("database disk image is malformed", sql=sql)
        return await super().execute(sql, params)


class ForgetfulStore(Store):
    """Loses 'coal' when names are resolved."""

    async def query_all(self, sql, params=()):
        rows = await super().query_all(sql, params)
        if "FROM entities WHERE name IN" in sql:
            rows = [r for r in rows if r["name"] != "coal"]
        return rows


def _swap_store(store_cls):
    live = main.app.state.store
    main.app.state.registry = RecipeRegistry(store_cls(live._conn, live.path))


def test_register_recipe_over_http(tmp_path, monkeypatch):
    with _client(tmp_path, monkeypatch) as client:
        first = client.post("/recipes", json=TORCH)
        second = client.post("/recipes", json=TORCH)
        assert first.status_code == 201
        assert first.json()["created"] is True
        assert second.status_code == 200
        assert second.json() == {"created": False, "hash": first.json()["hash"]}

        recipe = client.get(f"/recipes/{first.json()['hash']}")
        assert recipe.status_code == 200
        body = recipe.json()
        assert body["product"] == {"name": "torch", "number": 4}
        assert [m["name"] for m in body["materials"]] == ["stick", "coal"]

        listing = client.get("/recipes", params={"product": "torch"})
        assert len(listing.json()["recipes"]) == 1
    assert (tmp_path / "api.sqlite3").exists()


def test_entities_endpoints(tmp_path, monkeypatch):
    with _client(tmp_path, monkeypatch) as client:
        resp = client.post("/entities", json=[{"name": "wood", "max_stack": 64}])
        assert resp.json() == {"count": 1}
        resp = client.post("/entities", json=[{"name": "wood", "max_stack": 1}])
        assert resp.json() == {"count": 0}

        wood = client.get("/entities/wood").json()
        assert wood["max_stack"] == 64
        assert client.get("/entities/nothing").status_code == 404


def test_validation_and_missing_recipe(tmp_path, monkeypatch):
    with _client(tmp_path, monkeypatch) as client:
        bad = {**TORCH, "materials": []}
        assert client.post("/recipes", json=bad).status_code == 422
        zero = {**TORCH, "product": {"entity": {"name": "torch"}, "number": 0}}
        assert client.post("/recipes", json=zero).status_code == 422
        assert client.get("/recipes/" + "0" * 64).status_code == 404


def test_store_error_maps_to_500(tmp_path, monkeypatch):
    with _client(tmp_path, monkeypatch) as client:
        _swap_store(BrokenHashesStore)
        resp = client.post("/recipes", json=TORCH)
        assert resp.status_code == 500
        assert resp.json() == {"detail": "database disk image is malformed"}
        # the failed registration left nothing behind
        assert client.get("/entities/torch").status_code == 404


def test_unknown_entity_maps_to_400(tmp_path, monkeypatch):
    with _client(tmp_path, monkeypatch) as client:
        _swap_store(ForgetfulStore)
        resp = client.post("/recipes", json=TORCH)
        assert resp.status_code == 400
        assert "coal" in resp.json()["detail"]


def test_server_db_path(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", None)
    monkeypatch.setattr(settings, "DB_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "DB_NAME", "served")
    assert main.server_db_path() == tmp_path / "served.sqlite3"

    monkeypatch.setattr(settings, "DB_DIR", None)
    monkeypatch.chdir(tmp_path)
    assert main.server_db_path() == tmp_path / "served.sqlite3"

    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "explicit.db"))
    assert main.server_db_path() == tmp_path / "explicit.db"
