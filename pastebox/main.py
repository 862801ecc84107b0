from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pastebox.config import Settings
from pastebox.database import make_engine, make_session_factory
from pastebox.logger import get_logger
from pastebox.routers.pastes import router as pastes_router
from pastebox.services.paste_index import PasteIndex
from pastebox.services.paste_service import PasteService
from pastebox.services.paste_store import PasteStore
from pastebox.services.storage import Storage

log = get_logger("app")


def schedule_attachment_delete(slug: str, path: str) -> None:
    from pastebox.cleanup import delete_attachment

    delete_attachment.delay(slug, path)


def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or Settings.from_env()
        engine = make_engine(cfg.resolved_database_url)
        index = PasteIndex(make_session_factory(engine))
        index.create_schema()
        backend = storage or Storage.from_settings(cfg)
        defer = schedule_attachment_delete if cfg.s3_enabled and cfg.defer_s3_deletes else None
        store = PasteStore(index, backend, gc_days=cfg.gc_days, defer_delete=defer)
        store.load()
        app.state.settings = cfg
        app.state.store = store
        app.state.service = PasteService(store, backend, cfg)
        log.info("pastebox ready (s3=%s, gc_days=%d)", cfg.s3_enabled, cfg.gc_days)
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(title="pastebox", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:8080"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(pastes_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
