"""
Product Service - Business Logic for Products
"""
import logging
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from typing import List, Optional, Tuple
from uuid import UUID

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.lib.text import normalize_code, normalize_text, normalize_upper, capitalize_first
from stockdesk.models import Product, Customer, MovementType, ReferenceType
from stockdesk.schemas.common import ListParams
from stockdesk.schemas.product import ProductCreate, ProductUpdate
from .stock_service import StockService
from .order_service import OrderService

logger = logging.getLogger(__name__)

PRODUCT_SORT_FIELDS = ("code", "name", "price", "other_codes", "material", "post_process", "coating")

STOCK_ACTIONS = (MovementType.IN.value, MovementType.OUT.value)

def _normalized_fields(data: dict) -> dict:
    """Normalise the text columns present in data"""
    normalizers = {
        "code": normalize_code,
        "name": capitalize_first,
        "other_codes": normalize_text,
        "notes": normalize_text,
        "material": normalize_upper,
        "post_process": normalize_upper,
        "coating": normalize_text,
        "specs": normalize_text,
        "specs_net": normalize_text,
    }
    for key, normalize in normalizers.items():
        if key in data and data[key] is not None:
            data[key] = normalize(data[key])
    return data

class ProductService:
    """Product business logic"""
    
    @staticmethod
    def get_products(
        db: Session,
        params: ListParams,
        materials: Optional[List[str]] = None,
        customer_id: Optional[UUID] = None,
        low_stock_only: bool = False
    ) -> Tuple[List[Product], int]:
        """Get products with filters and pagination"""
        query = db.query(Product).filter(Product.deleted_at.is_(None))
        
        if params.q:
            search_term = f"%{params.q}%"
            query = query.filter(
                or_(
                    Product.code.ilike(search_term),
                    Product.name.ilike(search_term),
                    Product.material.ilike(search_term),
                    Product.other_codes.ilike(search_term),
                    Product.notes.ilike(search_term),
                    Product.coating.ilike(search_term)
                )
            )
        
        if materials:
            query = query.filter(or_(*[Product.material.ilike(f"%{m}%") for m in materials]))
        
        if customer_id:
            query = query.filter(Product.customer_id == customer_id)
        
        if low_stock_only:
            query = query.filter(Product.stock_quantity < Product.min_stock_level)
        
        total = query.count()
        
        sort_column = getattr(Product, params.sort_by)
        order = sort_column.desc() if params.descending else sort_column.asc()
        products = query.options(joinedload(Product.customer))\
            .order_by(order, Product.id)\
            .offset(params.offset)\
            .limit(params.page_size)\
            .all()
        
        return products, total
    
    @staticmethod
    def get_product_by_id(db: Session, product_id: UUID) -> Optional[Product]:
        """Get non-deleted product by ID"""
        return db.query(Product).filter(
            Product.id == product_id,
            Product.deleted_at.is_(None)
        ).first()
    
    @staticmethod
    def require_product(db: Session, product_id: UUID) -> Product:
        product = ProductService.get_product_by_id(db, product_id)
        if not product:
            raise AppError("PRODUCT_NOT_FOUND", details={"product_id": str(product_id)})
        return product
    
    @staticmethod
    def _validate(values: dict, partial: bool = False) -> None:
        errors = {}
        for field in ("code", "name"):
            if (not partial or field in values) and not values.get(field):
                errors[field] = "required"
        if errors:
            raise AppError.validation(**errors)
    
    @staticmethod
    def _check_customer(db: Session, customer_id: Optional[UUID]) -> None:
        if customer_id is None:
            return
        exists = db.query(Customer.id).filter(
            Customer.id == customer_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not exists:
            raise AppError("CUSTOMER_NOT_FOUND", details={"customer_id": str(customer_id)})
    
    @staticmethod
    def create_product(db: Session, product_data: ProductCreate, created_by: Optional[UUID] = None) -> Product:
        """Create new product; initial stock goes through the ledger"""
        values = _normalized_fields(product_data.model_dump(mode="json", exclude={"stock_quantity", "customer_id"}))
        ProductService._validate(values)
        ProductService._check_customer(db, product_data.customer_id)
        initial_stock = product_data.stock_quantity or 0
        
        try:
            product = Product(**values, customer_id=product_data.customer_id, stock_quantity=0)
            db.add(product)
            db.flush()
            
            if initial_stock > 0:
                StockService.book_movement(
                    db, product, initial_stock, MovementType.IN.value,
                    reference_type=ReferenceType.ADJUSTMENT.value,
                    reference_id=product.id,
                    notes="Initial stock",
                    created_by=created_by,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        
        db.refresh(product)
        logger.info(f"Created product {product.code} with initial stock {initial_stock}")
        return product
    
    @staticmethod
    def update_product(
        db: Session,
        product_id: UUID,
        product_data: ProductUpdate,
        created_by: Optional[UUID] = None
    ) -> Product:
        """Update product fields and optionally book an IN/OUT stock action"""
        stock_fields = {"stock_action", "stock_action_quantity", "stock_action_notes"}
        values = product_data.model_dump(mode="json", exclude_unset=True, exclude=stock_fields | {"customer_id"})
        values = _normalized_fields(values)
        ProductService._validate(values, partial=True)
        if "customer_id" in product_data.model_fields_set:
            ProductService._check_customer(db, product_data.customer_id)
            values["customer_id"] = product_data.customer_id
        
        action = product_data.stock_action
        action_quantity = product_data.stock_action_quantity or 0
        if action is not None and action not in STOCK_ACTIONS:
            raise AppError.validation(stock_action="select IN or OUT")
        
        try:
            product = StockService.lock_product(db, product_id)
            for key, value in values.items():
                setattr(product, key, value)
            
            if action and action_quantity > 0:
                StockService.book_movement(
                    db, product,
                    -action_quantity if action == MovementType.OUT.value else action_quantity,
                    action,
                    reference_type=ReferenceType.ADJUSTMENT.value,
                    reference_id=product.id,
                    notes=normalize_text(product_data.stock_action_notes),
                    created_by=created_by,
                )
                OrderService.refresh_ready_status(db, product.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        
        db.refresh(product)
        return product
    
    @staticmethod
    def remove_product(db: Session, product_id: UUID) -> Product:
        """Soft delete; refused while the product still holds stock"""
        try:
            product = StockService.lock_product(db, product_id)
            if product.stock_quantity != 0:
                raise AppError("PRODUCT_HAS_STOCK", details={"stock_quantity": product.stock_quantity})
            product.deleted_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Removed product {product.code}")
        return product
    
    @staticmethod
    def get_filter_options(db: Session) -> dict:
        """Distinct materials and the customers that own products"""
        materials = db.query(Product.material).filter(
            Product.deleted_at.is_(None),
            Product.material.isnot(None)
        ).distinct().order_by(Product.material).all()
        
        customers = db.query(Customer).join(Product, Product.customer_id == Customer.id).filter(
            Product.deleted_at.is_(None),
            Customer.deleted_at.is_(None)
        ).distinct().order_by(Customer.code).all()
        
        return {
            "materials": [m[0] for m in materials if m[0]],
            "customers": [{"id": str(c.id), "code": c.code, "name": c.name} for c in customers],
        }
