from fastapi import APIRouter, HTTPException, Query
from typing import List

from ..db import get_conn
from ..models.party import Party
from ..repos.parties import list_parties, get_party

vendors_router = APIRouter(prefix="/vendors", tags=["vendors"])
customers_router = APIRouter(prefix="/customers", tags=["customers"])


def _list(kind: str, limit: int, offset: int, active_only: bool):
    with get_conn() as conn:
        return list_parties(conn, kind, limit=limit, offset=offset, active_only=active_only)


def _get(kind: str, party_id: str):
    with get_conn() as conn:
        party = get_party(conn, kind, party_id)
    if not party:
        raise HTTPException(status_code=404, detail=f"{kind.capitalize()} not found")
    return party

# List vendors (purchase counterparties)
@vendors_router.get("", response_model=List[Party])
def list_vendors(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    active_only: bool = Query(False),
):
    return _list("vendor", limit, offset, active_only)

# Get single vendor
@vendors_router.get("/{vendor_id}", response_model=Party)
def get_vendor_by_id(vendor_id: str):
    return _get("vendor", vendor_id)

# List customers (sale counterparties)
@customers_router.get("", response_model=List[Party])
def list_customers(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    active_only: bool = Query(False),
):
    return _list("customer", limit, offset, active_only)

# Get single customer
@customers_router.get("/{customer_id}", response_model=Party)
def get_customer_by_id(customer_id: str):
    return _get("customer", customer_id)
