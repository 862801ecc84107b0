import mimetypes
from io import BytesIO
from urllib.parse import quote

from fastapi import (
    APIRouter,
    Cookie,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
)
from fastapi.responses import StreamingResponse

from pastebox.errors import (
    CodecError,
    FileTooLargeError,
    IdCollisionError,
    PasteboxError,
    PasteNotFoundError,
    RequestError,
    StorageNotFoundError,
    StorageUnavailableError,
    UnauthorizedError,
)
from pastebox.models.paste import Paste, Privacy, total_size_as_string
from pastebox.services.lifecycle import parse_burn_after
from pastebox.services.paste_service import (
    UPLOADER_COOKIE,
    CreationRequest,
    PasteService,
    UploadedFile,
)
from pastebox.services.slugs import to_u64

router = APIRouter()

UPLOADER_COOKIE_MAX_AGE = 60 * 60 * 24 * 365 * 3


def get_service(request: Request) -> PasteService:
    return request.app.state.service


def http_error(exc: PasteboxError) -> HTTPException:
    if isinstance(exc, (PasteNotFoundError, StorageNotFoundError)):
        return HTTPException(status_code=404, detail="Paste not found")
    if isinstance(exc, UnauthorizedError):
        return HTTPException(status_code=401, detail="Incorrect or missing password")
    if isinstance(exc, FileTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    if isinstance(exc, (RequestError, CodecError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (StorageUnavailableError, IdCollisionError)):
        return HTTPException(status_code=503, detail="Storage temporarily unavailable")
    return HTTPException(status_code=500, detail="Internal error")


def parse_slug(slug: str) -> int:
    try:
        return to_u64(slug)
    except ValueError:
        raise HTTPException(status_code=404, detail="Paste not found")


def paste_out(service: PasteService, paste: Paste, with_content: bool = True) -> dict:
    body = {
        "id": service.store.slug(paste.id),
        "privacy": paste.privacy.value,
        "paste_type": paste.paste_type,
        "extension": paste.extension,
        "editable": paste.editable,
        "created": paste.created,
        "expiration": paste.expiration,
        "last_read": paste.last_read,
        "read_count": paste.read_count,
        "burn_after_reads": paste.burn_after_reads,
        "size": total_size_as_string(paste.total_size()),
        "file": None,
    }
    if with_content:
        body["content"] = paste.content
    if paste.file is not None:
        body["file"] = {
            "name": paste.file.display_name,
            "size": paste.file.size,
            "embeddable": paste.file_embeddable(),
        }
    return body


def content_disposition(name: str) -> str:
    # header values are latin-1; non-ascii names travel in filename* (RFC 6266)
    fallback = "".join(c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in name)
    value = f'attachment; filename="{fallback}"'
    if fallback != name:
        value += f"; filename*=UTF-8''{quote(name, safe='')}"
    return value


def set_uploader_cookie(request: Request, response: Response, token: str) -> None:
    secure = request.url.scheme == "https"
    response.set_cookie(
        UPLOADER_COOKIE,
        token,
        max_age=UPLOADER_COOKIE_MAX_AGE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict" if secure else "lax",
    )


def file_response(name: str, data: bytes) -> StreamingResponse:
    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return StreamingResponse(
        BytesIO(data),
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(name)},
    )


@router.post("/upload")
def upload_paste(
    http_request: Request,
    response: Response,
    file: UploadFile | None = File(default=None),
    content: str = Form(default=""),
    privacy: str = Form(default="public"),
    plain_key: str = Form(default=""),
    random_key: str = Form(default=""),
    expiration: str | None = Form(default=None),
    burn_after: str = Form(default="0"),
    syntax_highlight: str = Form(default=""),
    uploader_password: str = Form(default=""),
    uploader_token: str | None = Cookie(default=None),
    service: PasteService = Depends(get_service),
):
    try:
        mode = Privacy(privacy)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown privacy mode {privacy!r}")

    uploaded = None
    if file is not None and file.filename:
        uploaded = UploadedFile(filename=file.filename, data=file.file.read())

    request = CreationRequest(
        content=content,
        privacy=mode,
        plain_key=plain_key,
        random_key=random_key,
        expiration=expiration,
        burn_after=parse_burn_after(burn_after),
        extension=syntax_highlight,
        file=uploaded,
        uploader_password=uploader_password,
        uploader_token=uploader_token or "",
    )
    try:
        paste = service.create(request)
    except PasteboxError as e:
        raise http_error(e)

    if service.settings.uploads_gated and not service.valid_uploader_token(uploader_token):
        set_uploader_cookie(http_request, response, service.login_uploader(uploader_password))

    slug = service.store.slug(paste.id)
    return {
        "status_code": 200,
        "id": slug,
        "url": f"/p/{slug}",
    }


@router.get("/p/{slug}")
def view_paste(slug: str, service: PasteService = Depends(get_service)):
    try:
        paste = service.view(parse_slug(slug))
    except PasteboxError as e:
        raise http_error(e)
    return paste_out(service, paste)


@router.post("/p/{slug}")
def view_private_paste(
    slug: str,
    key: str = Form(default=""),
    service: PasteService = Depends(get_service),
):
    try:
        paste = service.view(parse_slug(slug), key=key)
    except PasteboxError as e:
        raise http_error(e)
    return paste_out(service, paste)


@router.get("/file/{slug}")
def download_file(slug: str, service: PasteService = Depends(get_service)):
    try:
        name, data = service.fetch_file(parse_slug(slug))
    except PasteboxError as e:
        raise http_error(e)
    return file_response(name, data)


@router.post("/secure_file/{slug}")
def download_secure_file(
    slug: str,
    password: str = Form(default=""),
    service: PasteService = Depends(get_service),
):
    try:
        name, data = service.fetch_file(parse_slug(slug), key=password)
    except PasteboxError as e:
        raise http_error(e)
    return file_response(name, data)


@router.post("/remove/{slug}")
def remove_paste(
    slug: str,
    password: str = Form(default=""),
    service: PasteService = Depends(get_service),
):
    try:
        service.delete(parse_slug(slug), password=password)
    except PasteboxError as e:
        raise http_error(e)
    return {"status": "ok"}


@router.get("/list")
def list_pastes(service: PasteService = Depends(get_service)):
    return [paste_out(service, p, with_content=False) for p in service.list_public()]


@router.post("/login")
def login_uploader(
    request: Request,
    response: Response,
    password: str = Form(default=""),
    service: PasteService = Depends(get_service),
):
    if not service.settings.uploads_gated:
        return {"status": "ok"}
    try:
        token = service.login_uploader(password)
    except PasteboxError as e:
        raise http_error(e)
    set_uploader_cookie(request, response, token)
    return {"status": "ok"}
