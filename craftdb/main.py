from typing import Optional, List
import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from craftdb.models.recipe_schema import Entity, RecipePayload
from craftdb.repo.entities import get_entity, upsert_entities
from craftdb.repo.recipes import RecipeRegistry
from craftdb.settings import resolve_db_path, settings
from craftdb.store.adapter import Store
from craftdb.store.errors import StoreError, UnknownEntityError
from craftdb.store.schema import ensure_schema

logger = logging.getLogger(__name__)

app = FastAPI(title="craftdb recipe registry")


def server_db_path() -> Path:
    """DB_PATH if set, else DB_NAME under DB_DIR or the working directory.

    A server has no meaningful program directory (it would be uvicorn's), so
    the working directory stands in for it.
    """
    if settings.DB_PATH:
        return Path(settings.DB_PATH)
    return resolve_db_path(settings.DB_NAME, base_dir=settings.DB_DIR or Path.cwd())


def _store(request: Request) -> Store:
    return request.app.state.store


def _registry(request: Request) -> RecipeRegistry:
    return request.app.state.registry


@app.on_event("startup")
async def startup():
    store = await Store.open(server_db_path(), timeout=settings.DB_TIMEOUT)
    await ensure_schema(store)
    app.state.store = store
    app.state.registry = RecipeRegistry(store)


@app.on_event("shutdown")
async def shutdown():
    store: Optional[Store] = getattr(app.state, "store", None)
    if store is not None:
        await store.close()
        app.state.store = None


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(UnknownEntityError)
async def unknown_entity_handler(request: Request, exc: UnknownEntityError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.post("/entities")
async def add_entities(entities: List[Entity], request: Request):
    inserted = await upsert_entities(_store(request), entities)
    return {"count": inserted}


@app.get("/entities/{name}")
async def read_entity(name: str, request: Request):
    ent = await get_entity(_store(request), name)
    if ent is None:
        raise HTTPException(status_code=404, detail="entity not found")
    return ent.as_dict()


@app.post("/recipes")
async def add_recipe(payload: RecipePayload, request: Request, sort: bool = False):
    if sort:
        payload = payload.sorted_materials()
    created, digest = await _registry(request).register_payload(payload)
    return JSONResponse(
        status_code=201 if created else 200,
        content={"created": created, "hash": digest},
    )


@app.get("/recipes")
async def read_recipes(request: Request, product: Optional[str] = None):
    recipes = await _registry(request).list_recipes(product)
    return {"recipes": [r.as_dict() for r in recipes]}


@app.get("/recipes/{digest}")
async def read_recipe(digest: str, request: Request):
    recipe = await _registry(request).get_recipe(digest)
    if recipe is None:
        raise HTTPException(status_code=404, detail="recipe not found")
    return recipe.as_dict()
