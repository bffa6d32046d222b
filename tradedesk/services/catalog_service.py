"""
Catalog Service - Buyers, Warehouses and SKUs
"""
from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Tuple
from uuid import UUID

from tradedesk.core.exceptions import Conflict, NotFound
from tradedesk.models import Buyer, Warehouse, Sku
from tradedesk.models.enums import LifecycleStatus
from tradedesk.schemas.catalog import BuyerCreate, WarehouseCreate, SkuCreate
from .audit_service import AuditTrail, snapshot
from .context import Actor, SYSTEM_ACTOR

class CatalogService:
    """Buyer, warehouse and SKU master data"""
    
    def __init__(self, db: Session, audit: AuditTrail):
        self.db = db
        self.audit = audit
    
    # ---------- Buyers ----------
    
    def create_buyer(self, data: BuyerCreate, actor: Actor = SYSTEM_ACTOR) -> Buyer:
        buyer = Buyer(**data.model_dump())
        self.db.add(buyer)
        self.db.commit()
        self.db.refresh(buyer)
        self.audit.record_for(actor, "create_buyer", "buyer", buyer.id)
        return buyer
    
    def get_buyer(self, buyer_id: UUID) -> Buyer:
        buyer = self.db.query(Buyer).filter(Buyer.id == buyer_id).first()
        if not buyer:
            raise NotFound("Buyer not found")
        return buyer
    
    def list_buyers(self, search: Optional[str] = None, page: int = 1, per_page: int = 50) -> Tuple[List[Buyer], int]:
        query = self.db.query(Buyer)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(Buyer.name.ilike(term), Buyer.company_name.ilike(term)))
        total = query.count()
        buyers = query.order_by(Buyer.company_name).offset((page - 1) * per_page).limit(per_page).all()
        return buyers, total
    
    def set_buyer_status(self, buyer_id: UUID, status: LifecycleStatus, actor: Actor = SYSTEM_ACTOR) -> Buyer:
        buyer = self.get_buyer(buyer_id)
        before = buyer.lifecycle_status
        buyer.lifecycle_status = status.value
        self.db.commit()
        self.db.refresh(buyer)
        self.audit.record_for(actor, "update_buyer", "buyer", buyer.id,
                              changes={"before": {"lifecycle_status": before},
                                       "after": {"lifecycle_status": buyer.lifecycle_status}})
        return buyer
    
    # ---------- Warehouses ----------
    
    def create_warehouse(self, data: WarehouseCreate, actor: Actor = SYSTEM_ACTOR) -> Warehouse:
        if self.db.query(Warehouse).filter(Warehouse.code == data.code).first():
            raise Conflict(f"Warehouse {data.code} already exists")
        warehouse = Warehouse(**data.model_dump())
        self.db.add(warehouse)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict(f"Warehouse {data.code} already exists") from e
        self.db.refresh(warehouse)
        self.audit.record_for(actor, "create_warehouse", "warehouse", warehouse.id)
        return warehouse
    
    def get_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
        if not warehouse:
            raise NotFound("Warehouse not found")
        return warehouse
    
    def list_warehouses(self) -> List[Warehouse]:
        return self.db.query(Warehouse).order_by(Warehouse.code).all()
    
    # ---------- SKUs ----------
    
    def create_sku(self, data: SkuCreate, actor: Actor = SYSTEM_ACTOR) -> Sku:
        if self.get_sku_by_code(data.code):
            raise Conflict("SKU already exists", details={"code": data.code})
        sku = Sku(**data.model_dump())
        self.db.add(sku)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("SKU already exists", details={"code": data.code}) from e
        self.db.refresh(sku)
        self.audit.record_for(actor, "create_sku", "sku", sku.id)
        return sku
    
    def get_sku(self, sku_id: UUID) -> Sku:
        sku = self.db.query(Sku).filter(Sku.id == sku_id).first()
        if not sku:
            raise NotFound("SKU not found")
        return sku
    
    def get_sku_by_code(self, code: str) -> Optional[Sku]:
        return self.db.query(Sku).filter(Sku.code == code.strip().upper()).first()
    
    def list_skus(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        active_only: bool = True,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[Sku], int]:
        query = self.db.query(Sku)
        
        if active_only:
            query = query.filter(Sku.lifecycle_status == LifecycleStatus.ACTIVE.value)
        
        if category:
            query = query.filter(Sku.category == category)
        
        if search:
            term = f"%{search}%"
            query = query.filter(or_(Sku.code.ilike(term), Sku.description.ilike(term), Sku.hs_code.ilike(term)))
        
        total = query.count()
        skus = query.order_by(Sku.code).offset((page - 1) * per_page).limit(per_page).all()
        return skus, total
    
    def archive_sku(self, sku_id: UUID, actor: Actor = SYSTEM_ACTOR) -> Sku:
        """Soft-delete: the SKU stays referenced by history but leaves the active catalog"""
        sku = self.get_sku(sku_id)
        before = snapshot(sku)
        sku.lifecycle_status = LifecycleStatus.ARCHIVED.value
        self.db.commit()
        self.db.refresh(sku)
        self.audit.record_for(actor, "archive_sku", "sku", sku.id,
                              changes={"before": before, "after": snapshot(sku)})
        return sku
