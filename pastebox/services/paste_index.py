from typing import Iterable, List

from pastebox.database import Base
from pastebox.errors import CodecError
from pastebox.logger import get_logger
from pastebox.models.paste import FileRef, Paste, Privacy
from pastebox.models.paste_record import PasteRecord
from pastebox.services import locator as loc

log = get_logger("index")


def to_record(paste: Paste) -> PasteRecord:
    return PasteRecord(
        id=paste.id,
        content=paste.content,
        file_name=loc.to_string(paste.file.locator) if paste.file else None,
        file_size=paste.file.size if paste.file else None,
        privacy=paste.privacy.value,
        encrypted_key=paste.encrypted_key,
        editable=paste.editable,
        extension=paste.extension,
        paste_type=paste.paste_type,
        created=paste.created,
        expiration=paste.expiration,
        last_read=paste.last_read,
        read_count=paste.read_count,
        burn_after_reads=paste.burn_after_reads,
    )


def from_record(rec: PasteRecord) -> Paste:
    privacy = Privacy(rec.privacy)
    file = None
    if rec.file_name:
        file = FileRef(
            locator=loc.parse_locator(rec.file_name, encrypted=privacy.encrypt_server),
            size=rec.file_size or 0,
        )
    return Paste(
        id=rec.id,
        content=rec.content or "",
        file=file,
        privacy=privacy,
        encrypted_key=rec.encrypted_key,
        editable=rec.editable,
        extension=rec.extension or "",
        paste_type=rec.paste_type or "text",
        created=rec.created,
        expiration=rec.expiration,
        last_read=rec.last_read,
        read_count=rec.read_count,
        burn_after_reads=rec.burn_after_reads,
    )


class PasteIndex:
    """SQL mirror of the in-memory paste collection, keyed by paste id."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create_schema(self) -> None:
        with self.session_factory() as session:
            Base.metadata.create_all(bind=session.get_bind())

    def upsert(self, paste: Paste) -> None:
        with self.session_factory() as session:
            session.merge(to_record(paste))
            session.commit()

    def upsert_all(self, pastes: Iterable[Paste]) -> None:
        with self.session_factory() as session:
            for paste in pastes:
                session.merge(to_record(paste))
            session.commit()

    def delete(self, paste_id: int) -> None:
        with self.session_factory() as session:
            session.query(PasteRecord).filter(PasteRecord.id == paste_id).delete()
            session.commit()

    def delete_many(self, paste_ids: List[int]) -> None:
        if not paste_ids:
            return
        with self.session_factory() as session:
            session.query(PasteRecord).filter(PasteRecord.id.in_(paste_ids)).delete(
                synchronize_session=False
            )
            session.commit()

    def load_all(self) -> List[Paste]:
        pastes = []
        with self.session_factory() as session:
            for rec in session.query(PasteRecord).order_by(PasteRecord.created).all():
                try:
                    pastes.append(from_record(rec))
                except (CodecError, ValueError) as e:
                    log.error("Skipping unreadable paste row %s: %s", rec.id, e)
        return pastes
