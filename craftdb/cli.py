"""Typer CLI for craftdb (init, add-entity, register, import, show, list)."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from dotenv import load_dotenv
# load .env immediately so subsequent imports (which read settings at import time)
# pick up values from the .env file
load_dotenv()

# Configure top-level logging early so other modules pick it up.
import logging
from craftdb.settings import settings

log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE))
logging.basicConfig(
    level=log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    handlers=handlers,
)

# Quiet noisy third-party loggers while keeping our app logs
logging.getLogger("aiosqlite").setLevel(logging.WARNING)

from craftdb.models.recipe_schema import Entity
from craftdb.orchestrate import run as orchestrator
from craftdb.repo.entities import upsert_entities

app = typer.Typer()
console = Console()

DbOption = typer.Option(None, "--db", help="Database name (defaults to DB_NAME)")


def _fail(e: Exception) -> None:
    console.print(f"[red]Error:[/red] {e}")
    raise typer.Exit(code=1)


@app.command()
def init(db: Optional[str] = DbOption):
    """Create the schema if it does not exist yet."""

    async def _run():
        async with orchestrator.open_session(db) as session:
            return session.store.path

    try:
        path = asyncio.run(_run())
        console.print(f"Schema ready at {path}")
    except Exception as e:
        _fail(e)


@app.command("add-entity")
def add_entity(
    name: str,
    max_stack: Optional[int] = typer.Option(None, "--max-stack"),
    db: Optional[str] = DbOption,
):
    """Add an entity; an existing one is left untouched."""

    async def _run():
        async with orchestrator.open_session(db) as session:
            return await upsert_entities(session.store, [Entity(name=name, max_stack=max_stack)])

    try:
        inserted = asyncio.run(_run())
        console.print("Entity added." if inserted else "Entity already exists.")
    except Exception as e:
        _fail(e)


@app.command()
def register(
    product: str,
    materials: List[str],
    db: Optional[str] = DbOption,
    sort: bool = typer.Option(False, "--sort", help="Sort materials before hashing"),
):
    """Register PRODUCT[xN] made from MATERIAL[xN]..."""

    async def _run():
        payload = orchestrator.payload_from_tokens(product, materials)
        if sort:
            payload = payload.sorted_materials()
        async with orchestrator.open_session(db) as session:
            return await session.registry.register_payload(payload)

    try:
        created, digest = asyncio.run(_run())
        status = "registered" if created else "already known"
        console.print(f"Recipe {status}: {digest}")
    except Exception as e:
        _fail(e)


@app.command("import")
def import_file(
    path: str,
    db: Optional[str] = DbOption,
    sort: bool = typer.Option(False, "--sort", help="Sort materials before hashing"),
):
    """Register every recipe in a JSON file."""
    try:
        summary = asyncio.run(orchestrator.import_recipes(path, db, sort_materials=sort))
        console.print(
            f"Imported {summary.total} recipes ({summary.created} new, {summary.known} already known)."
        )
    except Exception as e:
        _fail(e)


@app.command()
def show(digest: str, db: Optional[str] = DbOption):
    """Print the recipe stored under a content hash."""

    async def _run():
        async with orchestrator.open_session(db) as session:
            return await session.registry.get_recipe(digest)

    try:
        recipe = asyncio.run(_run())
    except Exception as e:
        _fail(e)
    if recipe is None:
        console.print(f"[red]Error:[/red] no recipe with hash {digest}")
        raise typer.Exit(code=1)
    console.print(f"{recipe.product} x{recipe.product_number}")
    for name, number in recipe.materials:
        console.print(f"  {name} x{number}")


@app.command("list")
def list_recipes(
    product: Optional[str] = typer.Option(None, "--product"),
    db: Optional[str] = DbOption,
):
    """List registered recipes, optionally for one product."""

    async def _run():
        async with orchestrator.open_session(db) as session:
            return await session.registry.list_recipes(product)

    try:
        recipes = asyncio.run(_run())
    except Exception as e:
        _fail(e)
    table = Table("hash", "product", "materials")
    for r in recipes:
        mats = ", ".join(f"{n} x{q}" for n, q in r.materials)
        table.add_row(r.hash[:12], f"{r.product} x{r.product_number}", mats)
    console.print(table)


if __name__ == "__main__":
    app()
