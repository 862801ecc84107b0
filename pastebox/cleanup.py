from pastebox import celery_app
from pastebox.config import Settings
from pastebox.database import make_engine, make_session_factory
from pastebox.errors import StorageNotFoundError
from pastebox.logger import get_logger
from pastebox.services.paste_index import PasteIndex
from pastebox.services.paste_store import PasteStore
from pastebox.services.storage import Storage

log = get_logger("cleanup")


def run_sweep(settings: Settings, now=None) -> dict:
    """One eviction pass over the durable index, outside any web process."""
    engine = make_engine(settings.resolved_database_url)
    try:
        index = PasteIndex(make_session_factory(engine))
        index.create_schema()
        # inside the worker object-store deletes run inline
        store = PasteStore(index, Storage.from_settings(settings), gc_days=settings.gc_days)
        store.load()
        evicted = store.sweep(now)
    finally:
        engine.dispose()
    if evicted:
        log.info("Periodic sweep evicted %d pastes", len(evicted))
    return {"deleted": len(evicted)}


def run_delete_attachment(settings: Settings, slug: str, path: str) -> dict:
    storage = Storage.from_settings(settings)
    try:
        storage.delete(slug, path)
    except StorageNotFoundError:
        log.debug("Attachment %s of %s already gone", path, slug)
        return {"deleted": False}
    return {"deleted": True}


@celery_app.task(name="pastebox.cleanup.sweep_expired")
def sweep_expired():
    return run_sweep(Settings.from_env())


@celery_app.task(name="pastebox.cleanup.delete_attachment")
def delete_attachment(slug: str, path: str):
    return run_delete_attachment(Settings.from_env(), slug, path)
