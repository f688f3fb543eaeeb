"""Address resolution for checkout: find-or-create, deduplicated per owner.

Runs inside the order placement unit of work: a newly created address is
only committed if the order that needed it commits too.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from settlement.address.address import Address
from settlement.errors import InvalidAddress

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("full_name", "address_line1", "postal_code")

# Accept the storefront's camelCase keys alongside snake_case
_ALIASES = {
    "fullName": "full_name",
    "addressLine1": "address_line1",
    "addressLine2": "address_line2",
    "postalCode": "postal_code",
    "addressType": "address_type",
    "type": "address_type",
}


def clean_candidate(candidate: dict | None) -> dict:
    """Normalize payload keys and reject candidates missing required fields."""
    if not candidate:
        raise InvalidAddress({"address": ["Address is required"]})

    fields = {_ALIASES.get(key, key): value for key, value in candidate.items()}
    missing = [name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()]
    if missing:
        raise InvalidAddress({name: [f"{name} is required"] for name in missing})
    return fields


class AddressResolver:
    def resolve(self, owner_id, candidate: dict) -> str:
        """Return the id of an address equal to ``candidate``, creating one if needed."""
        fields = clean_candidate(candidate)
        repo = current_domain.repository_for(Address)

        if owner_id:
            existing = repo.find_matching(owner_id, fields)
            if existing is not None:
                logger.debug("Reusing saved address", owner_id=str(owner_id), address_id=str(existing.id))
                return str(existing.id)

            # First address an owner saves becomes their default
            is_default = not repo.find_for_owner(owner_id)
        else:
            is_default = False

        address = Address.create(owner_id=owner_id, is_default=is_default, **fields)
        repo.add(address)
        logger.debug("Created address", owner_id=str(owner_id) if owner_id else None, address_id=str(address.id))
        return str(address.id)

    def resolve_saved(self, owner_id, address_id) -> str:
        """Validate a saved address id supplied instead of a payload."""
        try:
            address = current_domain.repository_for(Address).get(address_id)
        except ObjectNotFoundError:
            raise InvalidAddress({"address_id": [f"Address {address_id} does not exist"]})

        if not owner_id or str(address.owner_id) != str(owner_id):
            raise InvalidAddress({"address_id": ["Address does not belong to this customer"]})
        return str(address.id)
