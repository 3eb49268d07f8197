"""
Customers API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.core.errors import AppError
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.schemas.customer import CustomerCreate, CustomerUpdate, CustomerResponse
from stockdesk.services import CustomerService
from stockdesk.services.customer_service import CUSTOMER_SORT_FIELDS

router = APIRouter(prefix="/customers", tags=["customers"])

@router.get("")
async def list_customers(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    params = ListParams.build(CUSTOMER_SORT_FIELDS, "code", "asc", page_index, page_size, sort_by, sort_dir, q)
    customers, total = CustomerService.get_customers(db, params)
    return page_response([CustomerResponse.model_validate(c) for c in customers], total, params)

@router.get("/options")
async def customer_options(db: Session = Depends(get_db)):
    return CustomerService.get_customer_options(db)

@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: UUID, db: Session = Depends(get_db)):
    customer = CustomerService.get_customer_by_id(db, customer_id)
    if not customer:
        raise AppError("CUSTOMER_NOT_FOUND")
    return customer

@router.post("", response_model=CustomerResponse, status_code=201)
async def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    return CustomerService.create_customer(db, data)

@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: UUID, data: CustomerUpdate, db: Session = Depends(get_db)):
    return CustomerService.update_customer(db, customer_id, data)

@router.delete("/{customer_id}")
async def remove_customer(customer_id: UUID, db: Session = Depends(get_db)):
    CustomerService.remove_customer(db, customer_id)
    return {"ok": True}
