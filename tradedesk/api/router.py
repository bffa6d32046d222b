"""
API Router - JSON Endpoints
"""
import math
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tradedesk import __version__
from tradedesk.core import get_db
from tradedesk.core.exceptions import Forbidden
from tradedesk.schemas import (
    AuditLogResponse, BuyerCreate, BuyerResponse, BuyerStatusUpdate, InventoryAdjust, InventoryCreate,
    InventoryResponse, OrderCreate, OrderResponse, OrderUpdate, Pagination, ReleaseRequest, ReserveRequest,
    ShipmentCreate, ShipmentResponse, ShipmentUpdate, SkuCreate, SkuResponse,
    StockMovementResponse, TransactionCreate, TransactionResponse, WarehouseCreate,
    WarehouseResponse,
)
from tradedesk.services import (
    Actor, CatalogService, InventoryService, OrderService, PaymentService, ShipmentService,
    list_audit_logs,
)
from .deps import (
    get_actor, get_catalog_service, get_inventory_service, get_order_service,
    get_payment_service, get_shipment_service, require_staff,
)
from .errors import ok
from .webhooks import webhook_router

api_router = APIRouter(tags=["API"])

api_router.include_router(webhook_router)


def dump(schema, obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def pagination(total: int, page: int, per_page: int) -> dict:
    pages = math.ceil(total / per_page) if per_page else 0
    return Pagination(total=total, page=page, pages=pages).model_dump()


# ===================== HEALTH & STATUS =====================

@api_router.get("/health")
def api_health():
    return ok({"status": "ok", "version": __version__, "timestamp": datetime.now().isoformat()})

# ===================== ORDERS =====================

@api_router.post("/orders", status_code=201)
def create_order(
    data: OrderCreate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    if actor.is_buyer and data.buyer_id != actor.buyer_id:
        raise Forbidden("Buyers can only order for themselves")
    order = service.create_order(data, actor)
    return ok(dump(OrderResponse, order))


@api_router.get("/orders")
def list_orders(
    status: Optional[str] = Query(None),
    buyer_id: Optional[UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.list_orders(
        status=status, buyer_id=buyer_id, date_from=date_from, date_to=date_to,
        search=search, page=page, per_page=per_page, actor=actor,
    )
    return ok([dump(OrderResponse, o) for o in orders], pagination=pagination(total, page, per_page))


@api_router.get("/orders/{order_id}")
def get_order(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    return ok(dump(OrderResponse, service.get_order(order_id, actor)))


@api_router.put("/orders/{order_id}")
def update_order(
    order_id: UUID,
    data: OrderUpdate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    require_staff(actor)
    return ok(dump(OrderResponse, service.update_order(order_id, data, actor)))


@api_router.delete("/orders/{order_id}")
def delete_order(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    require_staff(actor)
    service.delete_order(order_id, actor)
    return ok({"id": str(order_id), "deleted": True})

# ===================== INVENTORY =====================

@api_router.post("/inventory", status_code=201)
def create_inventory(
    data: InventoryCreate,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    require_staff(actor)
    record = service.create_record(data.sku_id, data.warehouse_id, data.qty_available, data.bin_location, actor)
    return ok(dump(InventoryResponse, record))


@api_router.get("/inventory")
def list_inventory(
    warehouse_id: Optional[UUID] = Query(None),
    sku_id: Optional[UUID] = Query(None),
    low_stock: bool = Query(False),
    service: InventoryService = Depends(get_inventory_service),
):
    records = service.list_inventory(warehouse_id=warehouse_id, sku_id=sku_id, low_stock=low_stock)
    return ok([dump(InventoryResponse, r) for r in records])


@api_router.get("/inventory/movements")
def list_movements(
    warehouse_id: Optional[UUID] = Query(None),
    sku_id: Optional[UUID] = Query(None),
    movement_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    service: InventoryService = Depends(get_inventory_service),
):
    movements = service.list_movements(
        warehouse_id=warehouse_id, sku_id=sku_id,
        movement_type=movement_type.upper() if movement_type else None, limit=limit,
    )
    return ok([dump(StockMovementResponse, m) for m in movements])


@api_router.post("/inventory/reserve")
def reserve_inventory(
    data: ReserveRequest,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    require_staff(actor)
    result = service.reserve(data.order_id, data.warehouse_id, actor)
    # Partial failure is reported, not raised
    return ok(result.model_dump(mode="json"))


@api_router.post("/inventory/release")
def release_inventory(
    data: ReleaseRequest,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    require_staff(actor)
    lines = service.release(data.order_id, data.warehouse_id, actor)
    return ok({"releases": [line.model_dump(mode="json") for line in lines]})


@api_router.post("/inventory/adjust")
def adjust_inventory(
    data: InventoryAdjust,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    require_staff(actor)
    record = service.adjust(data.sku_id, data.warehouse_id, data.adjustment, data.reason, actor)
    return ok(dump(InventoryResponse, record))

# ===================== SHIPMENTS =====================

@api_router.post("/shipments", status_code=201)
def create_shipment(
    data: ShipmentCreate,
    actor: Actor = Depends(get_actor),
    service: ShipmentService = Depends(get_shipment_service),
):
    require_staff(actor)
    return ok(dump(ShipmentResponse, service.create_shipment(data, actor)))


@api_router.get("/shipments")
def list_shipments(
    order_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    carrier: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    service: ShipmentService = Depends(get_shipment_service),
):
    shipments, total = service.list_shipments(order_id, status, carrier, page, per_page)
    return ok([dump(ShipmentResponse, s) for s in shipments], pagination=pagination(total, page, per_page))


@api_router.get("/shipments/{shipment_id}")
def get_shipment(shipment_id: UUID, service: ShipmentService = Depends(get_shipment_service)):
    return ok(dump(ShipmentResponse, service.get_shipment(shipment_id)))


@api_router.put("/shipments/{shipment_id}")
def update_shipment(
    shipment_id: UUID,
    data: ShipmentUpdate,
    actor: Actor = Depends(get_actor),
    service: ShipmentService = Depends(get_shipment_service),
):
    require_staff(actor)
    return ok(dump(ShipmentResponse, service.update_shipment(shipment_id, data, actor)))


@api_router.get("/shipments/{shipment_id}/track")
def track_shipment(shipment_id: UUID, service: ShipmentService = Depends(get_shipment_service)):
    return ok(service.track(shipment_id).model_dump(mode="json"))

# ===================== TRANSACTIONS =====================

@api_router.post("/transactions", status_code=201)
def record_transaction(
    data: TransactionCreate,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
):
    require_staff(actor)
    return ok(dump(TransactionResponse, service.record_transaction(data, actor)))


@api_router.get("/transactions")
def list_transactions(
    order_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    service: PaymentService = Depends(get_payment_service),
):
    items, total = service.list_transactions(order_id, status, page, per_page)
    return ok([dump(TransactionResponse, t) for t in items], pagination=pagination(total, page, per_page))


@api_router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: UUID, service: PaymentService = Depends(get_payment_service)):
    return ok(dump(TransactionResponse, service.get_transaction(transaction_id)))

# ===================== CATALOG =====================

@api_router.post("/buyers", status_code=201)
def create_buyer(
    data: BuyerCreate,
    actor: Actor = Depends(get_actor),
    service: CatalogService = Depends(get_catalog_service),
):
    require_staff(actor)
    return ok(dump(BuyerResponse, service.create_buyer(data, actor)))


@api_router.get("/buyers")
def list_buyers(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    service: CatalogService = Depends(get_catalog_service),
):
    buyers, total = service.list_buyers(search, page, per_page)
    return ok([dump(BuyerResponse, b) for b in buyers], pagination=pagination(total, page, per_page))


@api_router.get("/buyers/{buyer_id}")
def get_buyer(buyer_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return ok(dump(BuyerResponse, service.get_buyer(buyer_id)))


@api_router.put("/buyers/{buyer_id}/status")
def set_buyer_status(
    buyer_id: UUID,
    data: BuyerStatusUpdate,
    actor: Actor = Depends(get_actor),
    service: CatalogService = Depends(get_catalog_service),
):
    """Suspend, reactivate or archive a buyer; only active buyers can place orders"""
    require_staff(actor)
    return ok(dump(BuyerResponse, service.set_buyer_status(buyer_id, data.status, actor)))


@api_router.post("/warehouses", status_code=201)
def create_warehouse(
    data: WarehouseCreate,
    actor: Actor = Depends(get_actor),
    service: CatalogService = Depends(get_catalog_service),
):
    require_staff(actor)
    return ok(dump(WarehouseResponse, service.create_warehouse(data, actor)))


@api_router.get("/warehouses")
def list_warehouses(service: CatalogService = Depends(get_catalog_service)):
    return ok([dump(WarehouseResponse, w) for w in service.list_warehouses()])


@api_router.get("/warehouses/{warehouse_id}")
def get_warehouse(warehouse_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return ok(dump(WarehouseResponse, service.get_warehouse(warehouse_id)))


@api_router.post("/skus", status_code=201)
def create_sku(
    data: SkuCreate,
    actor: Actor = Depends(get_actor),
    service: CatalogService = Depends(get_catalog_service),
):
    require_staff(actor)
    return ok(dump(SkuResponse, service.create_sku(data, actor)))


@api_router.get("/skus")
def list_skus(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    include_archived: bool = Query(False),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    service: CatalogService = Depends(get_catalog_service),
):
    skus, total = service.list_skus(search, category, not include_archived, page, per_page)
    return ok([dump(SkuResponse, s) for s in skus], pagination=pagination(total, page, per_page))


@api_router.get("/skus/{sku_id}")
def get_sku(sku_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return ok(dump(SkuResponse, service.get_sku(sku_id)))


@api_router.delete("/skus/{sku_id}")
def archive_sku(
    sku_id: UUID,
    actor: Actor = Depends(get_actor),
    service: CatalogService = Depends(get_catalog_service),
):
    require_staff(actor)
    return ok(dump(SkuResponse, service.archive_sku(sku_id, actor)))

# ===================== AUDIT =====================

@api_router.get("/audit-logs")
def audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_staff(actor)
    logs = list_audit_logs(db, entity_type, entity_id, action, actor_id, limit)
    return ok([dump(AuditLogResponse, log) for log in logs])
