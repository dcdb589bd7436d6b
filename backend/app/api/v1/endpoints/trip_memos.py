"""
Trip memo API endpoints.

Collection memos (money collected from a client) and balance memos (what a
client still owes). Numbers come from the collectionMemo / balanceMemo
counters: CM000001, BM000001, ...
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.trip_memo import TripMemo
from backend.app.models.trip_enums import MemoType
from backend.app.models.activity_log import ActivityCategory
from backend.app.schemas.memo import MemoCreate, MemoUpdate, MemoResponse, MemoListResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin
from backend.app.core.timeutils import as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.domain.trips.trip_service import TripService
from backend.app.services.counter_service import CounterService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/trips", tags=["Trip Memos"])

MEMO_COUNTERS = {
    MemoType.COLLECTION: ("collectionMemo", "CM"),
    MemoType.BALANCE: ("balanceMemo", "BM"),
}

DATE_FIELDS = ("collection_date", "due_date")


async def get_memo_or_404(db: AsyncSession, trip_id: int, memo_id: int) -> TripMemo:
    result = await db.execute(
        select(TripMemo).where(TripMemo.id == memo_id, TripMemo.trip_id == trip_id)
    )
    memo = result.scalar_one_or_none()
    if not memo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Memo not found"
        )
    return memo


async def create_memo(
    db: AsyncSession,
    trip_id: int,
    memo_type: MemoType,
    payload: MemoCreate,
    admin: dict,
    request: Request,
) -> MemoResponse:
    trip = await TripService.load_trip(db, trip_id)
    if payload.client_id is not None and all(c.client_id != payload.client_id for c in trip.clients):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Client is not part of this trip"
        )

    counter_name, prefix = MEMO_COUNTERS[memo_type]
    number = await CounterService.get_next(db, counter_name, prefix=prefix, pad_length=6)

    data = payload.model_dump()
    for field in DATE_FIELDS:
        data[field] = as_naive_utc(data[field])
    memo = TripMemo(
        memo_number=number.number,
        memo_type=memo_type,
        trip_id=trip.id,
        created_by=admin["user_id"],
        **data,
    )
    db.add(memo)
    await db.commit()
    await db.refresh(memo)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.MEMO_CREATED, ActivityCategory.FINANCIAL,
        f"{memo_type.value.title()} memo {memo.memo_number} created for trip {trip.trip_number}",
        details={"amount": memo.amount, "memo_id": memo.id},
        related_trip_id=trip.id, related_user_id=memo.client_id, request=request,
    )
    return MemoResponse.model_validate(memo)


async def list_memos(db: AsyncSession, trip_id: int, memo_type: MemoType, current_user: dict) -> MemoListResponse:
    trip = await TripService.load_trip(db, trip_id)
    TripService.ensure_actor_can_touch(trip, current_user)
    result = await db.execute(
        select(TripMemo)
        .where(TripMemo.trip_id == trip_id, TripMemo.memo_type == memo_type)
        .order_by(TripMemo.created_at.desc(), TripMemo.id.desc())
    )
    memos = result.scalars().all()
    return MemoListResponse(
        memos=[MemoResponse.model_validate(m) for m in memos],
        total_amount=round_money(sum(m.amount for m in memos)),
    )


@router.post("/{trip_id}/memos/collection", response_model=MemoResponse, status_code=status.HTTP_201_CREATED)
async def create_collection_memo(
    trip_id: int,
    payload: MemoCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await create_memo(db, trip_id, MemoType.COLLECTION, payload, admin, request)


@router.get("/{trip_id}/memos/collection", response_model=MemoListResponse)
async def list_collection_memos(
    trip_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await list_memos(db, trip_id, MemoType.COLLECTION, current_user)


@router.post("/{trip_id}/memos/balance", response_model=MemoResponse, status_code=status.HTTP_201_CREATED)
async def create_balance_memo(
    trip_id: int,
    payload: MemoCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await create_memo(db, trip_id, MemoType.BALANCE, payload, admin, request)


@router.get("/{trip_id}/memos/balance", response_model=MemoListResponse)
async def list_balance_memos(
    trip_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await list_memos(db, trip_id, MemoType.BALANCE, current_user)


@router.patch("/{trip_id}/memos/{memo_id}", response_model=MemoResponse)
async def update_memo(
    trip_id: int,
    memo_id: int,
    payload: MemoUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    memo = await get_memo_or_404(db, trip_id, memo_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field in DATE_FIELDS:
            value = as_naive_utc(value)
        setattr(memo, field, value)
    await db.commit()
    await db.refresh(memo)
    return MemoResponse.model_validate(memo)


@router.delete("/{trip_id}/memos/{memo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_memo(
    trip_id: int,
    memo_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    memo = await get_memo_or_404(db, trip_id, memo_id)
    memo_number = memo.memo_number
    await db.delete(memo)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.MEMO_DELETED, ActivityCategory.FINANCIAL,
        f"Memo {memo_number} deleted", related_trip_id=trip_id, request=request,
    )
