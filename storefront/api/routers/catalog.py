# storefront/api/routers/catalog.py
from typing import List

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_catalog_service
from storefront.api.errors import service_errors
from storefront.domain.schemas import VariantOut
from storefront.services.catalog_service import CatalogService

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/products/{product_id}/variant", response_model=VariantOut)
def resolve_variant(
    product_id: int,
    value_ids: List[int] = Query(default=[]),
    quantity: int = Query(1, ge=1),
    svc: CatalogService = Depends(get_catalog_service),
):
    """
    Wariant dla wybranych wartosci atrybutow (po jednej na atrybut).
    """
    with service_errors():
        variant = svc.resolve_variant(product_id, value_ids)
        return {
            "id": variant.id,
            "product_id": variant.product_id,
            "variant_sku": variant.variant_sku,
            "variant_name": svc.variant_name(variant),
            "unit_price": svc.unit_price(variant),
            "stock": variant.stock,
            "in_stock": svc.is_available(variant, quantity),
        }
