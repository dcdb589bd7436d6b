"""
City lookup endpoints used by the trip origin/destination pickers.
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.city import City
from backend.app.schemas.misc import CityCreate, CityResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin

router = APIRouter(prefix="/cities", tags=["Cities"])


@router.get("/all", response_model=List[CityResponse])
async def list_cities(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(City).order_by(City.city.asc(), City.state.asc()))
    return [CityResponse.model_validate(c) for c in result.scalars().all()]


@router.post("/add", response_model=CityResponse, status_code=status.HTTP_201_CREATED)
async def add_city(
    payload: CityCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Add a city; the same city and state pair (case-insensitive) is rejected."""
    city_name = payload.city.strip()
    state_name = (payload.state or "NA").strip() or "NA"
    result = await db.execute(
        select(City).where(
            func.lower(City.city) == city_name.lower(),
            func.lower(City.state) == state_name.lower(),
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="City already exists"
        )

    city = City(city=city_name, state=state_name, pincode=payload.pincode)
    db.add(city)
    await db.commit()
    await db.refresh(city)
    return CityResponse.model_validate(city)
