import dataclasses
import itertools
import threading

import pytest

from pastebox.errors import (
    CodecError,
    FileTooLargeError,
    PasteNotFoundError,
    RequestError,
    StorageUnavailableError,
    UnauthorizedError,
)
from pastebox.models.paste import Privacy
from pastebox.services import locator as loc
from pastebox.services.paste_index import to_record
from pastebox.services.paste_service import (
    CreationRequest,
    PasteService,
    UploadedFile,
    uploader_token,
)
from pastebox.services.paste_store import PasteStore


def fixed_id(monkeypatch, *ids):
    seq = iter(ids)
    monkeypatch.setattr(PasteService, "_generate_id", lambda self: next(seq))


def test_public_paste_view_counts_reads(service, index):
    paste = service.create(CreationRequest(content="hello world"))
    assert paste.privacy is Privacy.PUBLIC
    assert paste.paste_type == "text"

    viewed = service.view(paste.id)
    assert viewed.content == "hello world"
    assert viewed.read_count == 1
    assert index.load_all()[0].read_count == 1


def test_url_content_is_classified(service):
    paste = service.create(CreationRequest(content="https://example.com/a?b=c"))
    assert paste.paste_type == "url"


def test_default_expiry_applies(service, settings, clock):
    paste = service.create(CreationRequest(content="x"))
    assert paste.expiration == clock.now + 86400
    never = service.create(CreationRequest(content="x", expiration="never"))
    assert never.expiration == clock.now + 7 * 86400


def test_private_paste_is_encrypted_at_rest(service, store):
    paste = service.create(
        CreationRequest(content="top secret", privacy=Privacy.PRIVATE, plain_key="pw")
    )
    stored = store.find_by_id(paste.id)
    assert stored.content != "top secret"
    assert stored.encrypted_key is None

    assert service.view(paste.id, key="pw").content == "top secret"


def test_private_paste_rejects_wrong_or_missing_key_without_counting(service, store):
    paste = service.create(
        CreationRequest(content="top secret", privacy=Privacy.PRIVATE, plain_key="pw")
    )
    with pytest.raises(UnauthorizedError):
        service.view(paste.id, key="wrong")
    with pytest.raises(UnauthorizedError):
        service.view(paste.id)
    assert store.find_by_id(paste.id).read_count == 0


def test_secret_key_is_never_persisted(service, store):
    client_key = "client-held-key-123"
    paste = service.create(
        CreationRequest(content="zero knowledge", privacy=Privacy.SECRET, random_key=client_key)
    )
    record = to_record(store.find_by_id(paste.id))
    for column in record.__table__.columns:
        value = getattr(record, column.name)
        assert client_key not in str(value)

    assert service.view(paste.id, key=client_key).content == "zero knowledge"


def test_readonly_ownership_proof(service, monkeypatch):
    fixed_id(monkeypatch, 42)
    paste = service.create(
        CreationRequest(content="look but do not touch", privacy=Privacy.READONLY, plain_key="pw1")
    )
    assert paste.id == 42
    assert paste.content == "look but do not touch"
    assert paste.encrypted_key

    with pytest.raises(UnauthorizedError) as wrong:
        service.delete(42, password="pw2")
    with pytest.raises(UnauthorizedError) as missing:
        service.delete(42, password="")
    assert str(wrong.value) == str(missing.value)

    service.delete(42, password="pw1")
    with pytest.raises(PasteNotFoundError):
        service.view(42)


def test_unprotected_paste_deletes_without_password(service):
    paste = service.create(CreationRequest(content="bye"))
    service.delete(paste.id)
    with pytest.raises(PasteNotFoundError):
        service.view(paste.id)


def test_non_editable_paste_needs_admin(store, storage, settings):
    service = PasteService(store, storage, dataclasses.replace(settings, editable=False))
    paste = service.create(CreationRequest(content="pinned"))
    with pytest.raises(UnauthorizedError):
        service.delete(paste.id, password="guess")
    service.delete(paste.id, password="admin-pw")


def test_private_paste_deletes_with_its_password(service):
    paste = service.create(CreationRequest(content="c", privacy=Privacy.PRIVATE, plain_key="pw"))
    with pytest.raises(UnauthorizedError):
        service.delete(paste.id, password="nope")
    service.delete(paste.id, password="pw")


def test_public_file_is_stored_under_its_name(service, settings):
    paste = service.create(
        CreationRequest(file=UploadedFile("my notes.txt", b"file body"))
    )
    slug = service.store.slug(paste.id)
    assert isinstance(paste.file.locator, loc.LocalFile)
    assert (settings.attachments_dir / slug / "my_notes.txt").read_bytes() == b"file body"
    assert service.fetch_file(paste.id) == ("my_notes.txt", b"file body")
    # downloading is not a read
    assert service.store.find_by_id(paste.id).read_count == 0


def test_private_file_is_stored_as_data_enc(service, settings):
    paste = service.create(
        CreationRequest(
            content="with file",
            privacy=Privacy.PRIVATE,
            plain_key="pw",
            file=UploadedFile("report.pdf", b"%PDF-1.4 body"),
        )
    )
    slug = service.store.slug(paste.id)
    assert isinstance(paste.file.locator, loc.LocalEncrypted)
    on_disk = (settings.attachments_dir / slug / "data.enc").read_bytes()
    assert on_disk != b"%PDF-1.4 body"
    assert not (settings.attachments_dir / slug / "report.pdf").exists()

    with pytest.raises(UnauthorizedError):
        service.fetch_file(paste.id)
    with pytest.raises(UnauthorizedError):
        service.fetch_file(paste.id, key="wrong")
    assert service.fetch_file(paste.id, key="pw") == ("report.pdf", b"%PDF-1.4 body")

    service.delete(paste.id, password="pw")
    assert not (settings.attachments_dir / slug).exists()


def test_file_only_encrypted_paste_proves_key_on_the_file(service):
    paste = service.create(
        CreationRequest(privacy=Privacy.PRIVATE, plain_key="pw", file=UploadedFile("a.bin", b"abc"))
    )
    with pytest.raises(UnauthorizedError):
        service.view(paste.id, key="anything")
    with pytest.raises(UnauthorizedError):
        service.delete(paste.id, password="anything")
    assert service.view(paste.id, key="pw").content == ""
    service.delete(paste.id, password="pw")


def test_files_in_object_storage(s3_settings, s3_storage, s3_client, index, clock):
    store = PasteStore(index, s3_storage, clock=clock)
    service = PasteService(store, s3_storage, s3_settings)

    plain = service.create(CreationRequest(file=UploadedFile("pic.png", b"png")))
    slug = store.slug(plain.id)
    assert loc.to_string(plain.file.locator) == f"s3://attachments/{slug}/pic.png"
    assert s3_client.objects[("pastes", f"attachments/{slug}/pic.png")] == b"png"
    assert plain.file_embeddable()

    secret = service.create(
        CreationRequest(privacy=Privacy.SECRET, random_key="k", file=UploadedFile("pic.png", b"png"))
    )
    secret_slug = store.slug(secret.id)
    assert loc.to_string(secret.file.locator) == "s3:pic.png"
    assert ("pastes", f"attachments/{secret_slug}/data.enc") in s3_client.objects
    assert not secret.file_embeddable()
    assert service.fetch_file(secret.id, key="k") == ("pic.png", b"png")

    service.delete(plain.id)
    assert f"attachments/{slug}/pic.png" in s3_client.deleted


def test_burn_after_one_read(service, settings):
    paste = service.create(
        CreationRequest(content="once", burn_after=1, file=UploadedFile("a.txt", b"a"))
    )
    slug = service.store.slug(paste.id)
    assert service.view(paste.id).content == "once"
    with pytest.raises(PasteNotFoundError):
        service.view(paste.id)
    assert not (settings.attachments_dir / slug).exists()


def test_expired_paste_is_evicted_on_next_lookup(service, clock):
    paste = service.create(CreationRequest(content="soon gone", expiration="1min"))
    clock.advance(60)
    with pytest.raises(PasteNotFoundError):
        service.view(paste.id)
    assert len(service.store) == 0


def test_failed_file_save_commits_nothing(store, settings, monkeypatch):
    class FailingStorage:
        def save(self, slug, path, data):
            raise StorageUnavailableError(path, "read-only filesystem")

    service = PasteService(store, FailingStorage(), settings)
    fixed_id(monkeypatch, 5, 5)
    with pytest.raises(StorageUnavailableError):
        service.create(CreationRequest(content="x", file=UploadedFile("a.txt", b"a")))
    assert len(store) == 0
    # the id reservation was released
    assert store.reserve_id(lambda: 5) == 5


@pytest.mark.parametrize(
    "request_",
    [
        CreationRequest(),
        CreationRequest(content="x", privacy=Privacy.PRIVATE),
        CreationRequest(content="x", privacy=Privacy.READONLY),
        CreationRequest(content="x", privacy=Privacy.SECRET, plain_key="pw"),
        CreationRequest(privacy=Privacy.PRIVATE, plain_key="pw", file=UploadedFile("e.txt", b"")),
    ],
)
def test_invalid_requests(service, request_):
    with pytest.raises(RequestError):
        service.create(request_)
    assert len(service.store) == 0


def test_unsafe_filename_is_rejected(service):
    with pytest.raises(CodecError):
        service.create(CreationRequest(file=UploadedFile("data.enc", b"x")))
    assert len(service.store) == 0


def test_file_size_limits(store, storage, settings):
    strict = dataclasses.replace(settings, max_file_size_encrypted_mb=0)
    service = PasteService(store, storage, strict)
    # the encrypted limit only applies to encrypted pastes
    service.create(CreationRequest(file=UploadedFile("a.txt", b"a")))
    with pytest.raises(FileTooLargeError):
        service.create(
            CreationRequest(privacy=Privacy.PRIVATE, plain_key="pw", file=UploadedFile("a.txt", b"a"))
        )


def test_uploads_can_be_disabled(store, storage, settings):
    service = PasteService(store, storage, dataclasses.replace(settings, no_file_upload=True))
    with pytest.raises(RequestError):
        service.create(CreationRequest(content="x", file=UploadedFile("a.txt", b"a")))


def test_concurrent_creations(service, monkeypatch):
    counter = itertools.count(1)
    lock = threading.Lock()

    def next_id(self):
        with lock:
            return next(counter)

    monkeypatch.setattr(PasteService, "_generate_id", next_id)

    def worker(n):
        service.create(CreationRequest(content=f"paste {n}", file=UploadedFile(f"{n}.txt", b"x")))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(service.store) == 20
    assert len({p.id for p in service.store.snapshot()}) == 20


def test_burn_after_one_read_with_interleaved_reader(service, monkeypatch):
    paste = service.create(CreationRequest(content="once", burn_after=1))
    store = service.store
    plain_find = store.find_by_id
    delivered = []

    def find_then_read_again(paste_id):
        found = plain_find(paste_id)
        if not delivered:
            delivered.append(service.view(paste_id).content)
        return found

    monkeypatch.setattr(store, "find_by_id", find_then_read_again)
    with pytest.raises(PasteNotFoundError):
        service.view(paste.id)
    assert delivered == ["once"]


def test_uploader_gate_on_read_only_instance(store, storage, settings):
    gated = dataclasses.replace(settings, readonly=True, uploader_password="up-pw")
    service = PasteService(store, storage, gated)

    with pytest.raises(UnauthorizedError):
        service.create(CreationRequest(content="x"))
    with pytest.raises(UnauthorizedError):
        service.create(CreationRequest(content="x", uploader_password="nope"))
    assert len(store) == 0

    token = service.login_uploader(" up-pw ")
    assert token == uploader_token("up-pw")
    assert service.create(CreationRequest(content="x", uploader_token=token))
    assert service.create(CreationRequest(content="y", uploader_password="up-pw"))


def test_uploader_password_ignored_unless_read_only(store, storage, settings):
    open_instance = dataclasses.replace(settings, uploader_password="up-pw")
    service = PasteService(store, storage, open_instance)
    assert service.create(CreationRequest(content="x"))
    with pytest.raises(RequestError):
        service.login_uploader("up-pw")
