from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.rbac import ADMIN_ROLES, require_roles
from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.fullboard_price import FullboardPrice
from travel_desk.models.report import TransportationType
from travel_desk.models.user import User
from travel_desk.schemas.masters import FullboardPriceCreate, FullboardPriceOut, TransportationTypeCreate
from travel_desk.schemas.report import TransportationTypeOut

router = APIRouter(tags=["masters"])


def price_to_out(p: FullboardPrice) -> FullboardPriceOut:
    return FullboardPriceOut(id=str(p.id), province_name=p.province_name, price=p.price)


@router.get("/fullboard-prices", response_model=list[FullboardPriceOut])
def list_fullboard_prices(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return [price_to_out(p) for p in db.query(FullboardPrice).order_by(FullboardPrice.province_name.asc()).all()]


@router.post("/fullboard-prices", response_model=FullboardPriceOut, status_code=status.HTTP_201_CREATED)
def create_fullboard_price(
    payload: FullboardPriceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    try:
        with db.begin_nested():
            p = FullboardPrice(province_name=payload.province_name.strip(), price=payload.price)
            db.add(p)
            db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Province name already in use")

    log_event(
        db=db,
        actor=current_user,
        action="FULLBOARD_PRICE_CREATED",
        entity_type="fullboard_price",
        entity_id=p.id,
        metadata={"province_name": p.province_name, "price": str(p.price)},
    )
    db.commit()
    invalidate_dashboard()
    return price_to_out(p)


@router.get("/transportation-types", response_model=list[TransportationTypeOut])
def list_transportation_types(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    rows = db.query(TransportationType).order_by(TransportationType.kind.asc()).all()
    return [TransportationTypeOut(id=str(t.id), kind=t.kind, label=t.label) for t in rows]


@router.post("/transportation-types", response_model=TransportationTypeOut, status_code=status.HTTP_201_CREATED)
def create_transportation_type(
    payload: TransportationTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    try:
        with db.begin_nested():
            t = TransportationType(kind=payload.kind, label=payload.label)
            db.add(t)
            db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Transportation type {payload.kind} already in use")

    log_event(
        db=db,
        actor=current_user,
        action="TRANSPORTATION_TYPE_CREATED",
        entity_type="transportation_type",
        entity_id=t.id,
        metadata={"kind": t.kind, "label": t.label},
    )
    db.commit()
    return TransportationTypeOut(id=str(t.id), kind=t.kind, label=t.label)
