"""HTTP routes of the photo store API."""

import asyncio
import base64
import binascii
import json
from collections.abc import Callable

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from ..config import BLOB_CACHE_CONTROL, LIST_CACHE_CONTROL
from ..errors import InvalidInputError
from ..health import perform_health_check
from ..models.schemas import AnalyzeRequest, PhotoUpdate, UploadRequest
from ..services.metadata import MetadataCache
from ..services.photos import DEFAULT_PAGE_SIZE, PhotoService
from ..services.storage import StorageService
from .deps import cache_factory, get_photo_service, storage_factory

router = APIRouter()


def decode_image(value: str) -> bytes:
    """
    Decode a base64 image, with or without a ``data:`` URL prefix.

    Raises:
        InvalidInputError: If the value is not valid base64
    """
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError("image must be base64 encoded", code="invalid_image_encoding") from e


async def read_image_payload(request: Request) -> tuple[dict, bytes | None]:
    """
    Read form fields and image bytes from a JSON or multipart request.

    Raises:
        InvalidInputError: If the body is neither valid JSON nor multipart
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        fields = {key: value for key, value in form.items() if not isinstance(value, UploadFile)}
        image = form.get("image")
        if isinstance(image, UploadFile):
            return fields, await image.read()
        return fields, decode_image(image) if image else None

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInputError(
            "Request body must be JSON or multipart form data", code="invalid_body"
        ) from e

    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object", code="invalid_body")

    image = body.get("image")
    if image is not None and not isinstance(image, str):
        raise InvalidInputError("image must be base64 encoded", code="invalid_image_encoding")
    return body, decode_image(image) if image else None


def parse_fields(model: type[BaseModel], fields: dict) -> BaseModel:
    """Validate loosely typed form/JSON fields into a request model."""
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise InvalidInputError(f"Invalid request: {problems}", code="invalid_body") from e


def etag_matches(if_none_match: str | None, etag: str | None) -> bool:
    """Whether an If-None-Match header matches the current entity tag."""
    if not if_none_match or not etag:
        return False
    candidates = [tag.strip() for tag in if_none_match.split(",")]
    bare = etag.removeprefix("W/")
    return "*" in candidates or any(tag.removeprefix("W/") == bare for tag in candidates)


@router.post("/upload")
async def upload_photo(request: Request, service: PhotoService = Depends(get_photo_service)):
    """Ingest a photo: store thumbnail and original renditions, then the metadata record."""
    fields, image_data = await read_image_payload(request)
    body = parse_fields(UploadRequest, fields)

    record = await service.upload(
        body.user_id,
        body.taken_at,
        image_data,
        body_fat=body.body_fat,
        weight=body.weight,
    )
    return {"success": True, "metadata": record.to_dict()}


@router.get("/photos/{user_id}")
async def list_photos(
    user_id: str,
    cursor: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    photo_type: str = Query("thumbnail", alias="type"),
    preload: bool = True,
    service: PhotoService = Depends(get_photo_service),
):
    """A page of the user's photos, with lookahead references when preloading."""
    page = await service.list_photos(user_id, cursor=cursor, limit=limit, variant=photo_type, preload=preload)
    return JSONResponse(page.to_dict(), headers={"Cache-Control": LIST_CACHE_CONTROL})


@router.get("/photos/{user_id}/{taken_at}/{photo_type}")
async def get_photo(
    user_id: str,
    taken_at: str,
    photo_type: str,
    request: Request,
    service: PhotoService = Depends(get_photo_service),
):
    """Serve one rendition with long-lived cache headers."""
    blob = await service.get_photo(user_id, taken_at, photo_type)

    headers = {"Cache-Control": BLOB_CACHE_CONTROL}
    etag = blob.info.http_etag
    if etag:
        headers["ETag"] = etag

    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=headers)

    return Response(content=blob.data, media_type=blob.info.content_type, headers=headers)


@router.patch("/photos/{user_id}/{taken_at}")
async def update_photo(
    user_id: str,
    taken_at: str,
    update: PhotoUpdate,
    service: PhotoService = Depends(get_photo_service),
):
    """Merge bodyFat/weight into the record and refresh its retention."""
    record = await service.update_metadata(user_id, taken_at, update.changes())
    return record.to_dict()


@router.post("/analyze")
async def analyze_photo(request: Request, service: PhotoService = Depends(get_photo_service)):
    """Estimate body fat for a photo without storing it."""
    fields, image_data = await read_image_payload(request)
    body = parse_fields(AnalyzeRequest, fields)

    # One rate-limit bucket per caller address
    identity = request.client.host if request.client else None
    body_fat = await service.analyze(image_data, body.attributes(), identity=identity)
    return {"bodyFatPercentage": body_fat, "success": True}


@router.get("/health")
async def health(
    get_storage: Callable[[], StorageService] = Depends(storage_factory),
    get_cache: Callable[[], MetadataCache] = Depends(cache_factory),
):
    report = await asyncio.to_thread(perform_health_check, get_storage, get_cache)
    return JSONResponse(report, status_code=200 if report["status"] == "healthy" else 503)
