"""Address Routes — owner-scoped address CRUD and default selection.

Invariants:
    - Owner id always comes from get_owner_id; a path id never crosses owners
    - Mutations go through retry_on_conflict (one retry on ConsistencyConflictError)
    - Responses carry the touched address plus the owner's active set

Design Decisions:
    - /default registered before /{address_id} so the literal path wins
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from storefront.api.conflict_retry import retry_on_conflict
from storefront.api.dependencies import get_address_service, get_owner_id
from storefront.schemas.address import (
    AddressCreate,
    AddressListResponse,
    AddressMutationResponse,
    AddressResponse,
    AddressUpdate,
)
from storefront.services.address_service import AddressResult, AddressService

router = APIRouter(prefix="/api/v1/addresses", tags=["addresses"])


def _mutation_response(result: AddressResult) -> AddressMutationResponse:
    return AddressMutationResponse(
        message=result.message,
        address=AddressResponse.model_validate(result.address),
        addresses=[AddressResponse.model_validate(a) for a in result.addresses],
        default_reason=result.default_reason,
        was_default=result.was_default,
    )


@router.post(
    "", response_model=AddressMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_address(
    body: AddressCreate,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    """Create an address; the first one (or the first with no default around) becomes default."""
    fields = body.model_dump(exclude={"is_default"})
    result = await retry_on_conflict(
        lambda: service.create_address(owner_id, fields, body.is_default),
        owner_id,
    )
    return _mutation_response(result)


@router.get("", response_model=AddressListResponse)
async def list_addresses(
    include_inactive: bool = Query(False),
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    addresses = await service.list_addresses(owner_id, include_inactive)
    return AddressListResponse(
        addresses=[AddressResponse.model_validate(a) for a in addresses],
        count=len(addresses),
    )


@router.get("/default", response_model=AddressResponse)
async def get_default_address(
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    return AddressResponse.model_validate(
        await service.get_default_address(owner_id),
    )


@router.get("/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    return AddressResponse.model_validate(
        await service.get_address(owner_id, address_id),
    )


@router.put("/{address_id}", response_model=AddressMutationResponse)
async def update_address(
    address_id: UUID,
    body: AddressUpdate,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    """Patch location fields; is_default true/false moves the default flag."""
    fields = body.model_dump(exclude={"is_default"}, exclude_none=True)
    result = await retry_on_conflict(
        lambda: service.update_address(
            owner_id, address_id, fields, body.is_default,
        ),
        owner_id,
    )
    return _mutation_response(result)


@router.patch("/{address_id}/default", response_model=AddressMutationResponse)
async def set_default_address(
    address_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    result = await retry_on_conflict(
        lambda: service.set_default(owner_id, address_id), owner_id,
    )
    return _mutation_response(result)


@router.delete("/{address_id}", response_model=AddressMutationResponse)
async def soft_delete_address(
    address_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    """Deactivate an address. Deleting the default leaves no default."""
    result = await retry_on_conflict(
        lambda: service.soft_delete(owner_id, address_id), owner_id,
    )
    return _mutation_response(result)


@router.post("/{address_id}/restore", response_model=AddressMutationResponse)
async def restore_address(
    address_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    result = await retry_on_conflict(
        lambda: service.restore(owner_id, address_id), owner_id,
    )
    return _mutation_response(result)


@router.delete("/{address_id}/permanent")
async def hard_delete_address(
    address_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: AddressService = Depends(get_address_service),
):
    """Permanently remove a soft-deleted address."""
    await service.hard_delete(owner_id, address_id)
    return {"message": "Address permanently deleted", "id": str(address_id)}
