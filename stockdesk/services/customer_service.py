"""
Customer Service - Business Logic for Customers
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List, Optional, Tuple
from uuid import UUID

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.models import Customer
from stockdesk.schemas.common import ListParams
from stockdesk.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)

CUSTOMER_SORT_FIELDS = ("code", "name", "email", "address", "phone")

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

class CustomerService:
    """Customer business logic"""
    
    @staticmethod
    def get_customers(db: Session, params: ListParams) -> Tuple[List[Customer], int]:
        """Get customers with search, sorting and pagination"""
        query = db.query(Customer).filter(Customer.deleted_at.is_(None))
        
        if params.q:
            search_term = f"%{params.q}%"
            query = query.filter(
                or_(
                    Customer.code.ilike(search_term),
                    Customer.name.ilike(search_term),
                    Customer.email.ilike(search_term),
                    Customer.address.ilike(search_term),
                    Customer.phone.ilike(search_term)
                )
            )
        
        total = query.count()
        
        sort_column = getattr(Customer, params.sort_by)
        order = sort_column.desc() if params.descending else sort_column.asc()
        customers = query.order_by(order, Customer.id)\
            .offset(params.offset)\
            .limit(params.page_size)\
            .all()
        
        return customers, total
    
    @staticmethod
    def get_customer_by_id(db: Session, customer_id: UUID) -> Optional[Customer]:
        """Get non-deleted customer by ID"""
        return db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.deleted_at.is_(None)
        ).first()
    
    @staticmethod
    def require_customer(db: Session, customer_id: UUID) -> Customer:
        customer = CustomerService.get_customer_by_id(db, customer_id)
        if not customer:
            raise AppError("CUSTOMER_NOT_FOUND", details={"customer_id": str(customer_id)})
        return customer
    
    @staticmethod
    def _validated(data: CustomerCreate) -> dict:
        values = {
            "code": _clean(data.code),
            "name": _clean(data.name),
            "email": _clean(data.email),
            "phone": _clean(data.phone),
            "address": _clean(data.address),
        }
        errors = {}
        if not values["code"]:
            errors["code"] = "required"
        if not values["name"]:
            errors["name"] = "required"
        if errors:
            raise AppError.validation(**errors)
        return values
    
    @staticmethod
    def _check_code_free(db: Session, code: str, exclude_id: Optional[UUID] = None) -> None:
        query = db.query(Customer).filter(Customer.code == code, Customer.deleted_at.is_(None))
        if exclude_id:
            query = query.filter(Customer.id != exclude_id)
        if query.first():
            raise AppError("ALREADY_EXISTS", details={"code": "already in use"})
    
    @staticmethod
    def create_customer(db: Session, data: CustomerCreate) -> Customer:
        """Create new customer"""
        values = CustomerService._validated(data)
        CustomerService._check_code_free(db, values["code"])
        
        customer = Customer(**values)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        logger.info(f"Created customer {customer.code}")
        return customer
    
    @staticmethod
    def update_customer(db: Session, customer_id: UUID, data: CustomerUpdate) -> Customer:
        """Update customer"""
        customer = CustomerService.require_customer(db, customer_id)
        values = CustomerService._validated(data)
        CustomerService._check_code_free(db, values["code"], exclude_id=customer.id)
        
        for key, value in values.items():
            setattr(customer, key, value)
        
        db.commit()
        db.refresh(customer)
        return customer
    
    @staticmethod
    def remove_customer(db: Session, customer_id: UUID) -> Customer:
        """Soft delete"""
        customer = CustomerService.require_customer(db, customer_id)
        customer.deleted_at = utcnow()
        db.commit()
        logger.info(f"Removed customer {customer.code}")
        return customer
    
    @staticmethod
    def get_customer_options(db: Session) -> List[dict]:
        """Id/code/name list for filter dropdowns"""
        customers = db.query(Customer).filter(Customer.deleted_at.is_(None)).order_by(Customer.code).all()
        return [{"id": str(c.id), "code": c.code, "name": c.name} for c in customers]
