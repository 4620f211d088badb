import asyncio

import typer
import uvicorn
from sqlalchemy.orm import Session

from callhub.core.config import settings
from callhub.core.database import SessionLocal
from callhub.services import sync
from callhub.services.storage import SqlAlchemyStorage
from callhub.tasks import run_vapi_sync

app = typer.Typer()


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000):
    """Run the API and the in-process webhook worker."""
    uvicorn.run("callhub.main:app", host=host, port=port, log_level=settings.log_level.lower())


@app.command()
def dedupe_calls():
    """Remove duplicate call records that share an external call id."""
    db: Session = SessionLocal()
    try:
        removed = asyncio.run(sync.dedupe_calls(SqlAlchemyStorage(db)))
        typer.echo(f"Removed {removed} duplicate call(s)")
    finally:
        db.close()


@app.command()
def sync_vapi(limit: int = 100):
    """Back-fill ended calls from the Vapi API."""
    db: Session = SessionLocal()
    try:
        result = asyncio.run(run_vapi_sync(db, limit))
    finally:
        db.close()
    for status, count in sorted(result["counts"].items()):
        typer.echo(f"{status}: {count}")
    for error in result["errors"]:
        typer.echo(f"error: {error}", err=True)


if __name__ == "__main__":
    app()
