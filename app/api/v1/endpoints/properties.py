import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import LedgerError
from app.schemas.common import IdResponse, StatusResponse
from app.schemas.dashboard import LocalityCount
from app.schemas.property import PricingIn, PropertyCard, PropertyCreate, PropertyDetailOut, PropertyOut
from app.services import listing_lifecycle, listing_queries
from app.services.access_policy import Operation, authorize
from app.services.auth import Actor, get_actor, get_optional_actor
from app.services.ledger import LedgerStore, get_ledger
from app.services.listing_state import PropertyStatus
from app.services.storage import ALLOWED_IMAGE_SUFFIXES, LocalImageStore, get_image_store

log = logging.getLogger(__name__)
router = APIRouter()


@router.post("/properties", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
async def submit_property(
    payload: PropertyCreate,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> IdResponse:
    property_id = await listing_lifecycle.submit_property(ledger=ledger, actor=actor, fields=payload)
    return IdResponse(id=property_id)


@router.get("/properties", response_model=list[PropertyCard])
async def list_properties(
    type: str | None = None,
    purpose: str | None = None,
    location: str | None = None,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> list[PropertyCard]:
    return await listing_queries.list_public(db, actor=actor, type=type, purpose=purpose, location=location)


@router.get("/localities", response_model=list[LocalityCount])
async def localities(actor: Actor = Depends(get_optional_actor), db: AsyncSession = Depends(get_db)) -> list[LocalityCount]:
    return await listing_queries.top_localities(db, actor=actor)


@router.get("/properties/{property_id}", response_model=PropertyDetailOut)
async def property_detail(
    property_id: str,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> PropertyDetailOut:
    return await listing_queries.get_detail(db, actor=actor, property_id=property_id)


@router.get("/me/properties", response_model=list[PropertyOut])
async def my_properties(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[PropertyOut]:
    return await listing_queries.list_seller_properties(db, actor=actor)


@router.put("/properties/{property_id}/pricing", response_model=StatusResponse)
async def set_pricing(
    property_id: str,
    payload: PricingIn,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> StatusResponse:
    await listing_lifecycle.set_pricing(
        ledger=ledger,
        actor=actor,
        property_id=property_id,
        final_amount=payload.final_amount,
        govt_amount=payload.govt_amount,
    )
    return StatusResponse(id=property_id, status=PropertyStatus.PENDING)


@router.post("/properties/{property_id}/images", response_model=list[IdResponse], status_code=status.HTTP_201_CREATED)
async def upload_images(
    property_id: str,
    files: list[UploadFile] = File(...),
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
    store: LocalImageStore = Depends(get_image_store),
) -> list[IdResponse]:
    """
    Store each uploaded file, then record it against the listing. A file whose record is
    rejected is removed from the store again.
    """
    authorize(actor.role, Operation.ATTACH_IMAGE)
    if not files:
        raise HTTPException(status_code=422, detail="No images uploaded")
    if len(files) > settings.max_images_per_upload:
        raise HTTPException(status_code=422, detail=f"At most {settings.max_images_per_upload} images per upload")

    created: list[IdResponse] = []
    for upload in files:
        if Path(upload.filename or "").suffix.lower() not in ALLOWED_IMAGE_SUFFIXES:
            raise HTTPException(status_code=422, detail=f"Unsupported image type: {upload.filename}")
        data = await upload.read()
        if not data:
            raise HTTPException(status_code=422, detail=f"Empty file: {upload.filename}")
        if len(data) > settings.max_image_bytes:
            raise HTTPException(status_code=413, detail=f"Image too large: {upload.filename}")

        uri = store.put_bytes(key=store.image_key(property_id=property_id, filename=upload.filename), data=data)
        try:
            image_id = await listing_lifecycle.attach_image(
                ledger=ledger, actor=actor, property_id=property_id, image_path=uri
            )
        except LedgerError:
            store.delete(uri)
            raise
        created.append(IdResponse(id=image_id))

    return created


@router.post("/properties/{property_id}/verify", response_model=StatusResponse)
async def verify_property(
    property_id: str,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> StatusResponse:
    await listing_lifecycle.verify_property(ledger=ledger, actor=actor, property_id=property_id)
    return StatusResponse(id=property_id, status=PropertyStatus.LIVE)


@router.get("/agent/verification-queue", response_model=list[PropertyOut])
async def verification_queue(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[PropertyOut]:
    return await listing_queries.verification_queue(db, actor=actor)
