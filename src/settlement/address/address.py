"""Address aggregate: a shipping or billing location captured at checkout.

Addresses are created lazily while placing orders and reused by later orders
of the same owner. Two addresses of one owner whose normalized fields are
equal are the same address; ``dedup_key`` is that normalized form.
"""

import re
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String

from settlement.domain import settlement

DEFAULT_COUNTRY = "India"

_WHITESPACE = re.compile(r"\s+")


class AddressType(Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


def normalize_field(value) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip().casefold()


def normalize_postal_code(value) -> str:
    return _WHITESPACE.sub("", str(value or "")).casefold()


def dedup_key(fields: dict) -> tuple:
    """Normalized identity of an address payload, independent of formatting."""
    return (
        normalize_field(fields.get("full_name")),
        normalize_field(fields.get("phone")),
        normalize_field(fields.get("address_line1")),
        normalize_field(fields.get("address_line2")),
        normalize_field(fields.get("city")),
        normalize_field(fields.get("state")),
        normalize_postal_code(fields.get("postal_code")),
        normalize_field(fields.get("country") or DEFAULT_COUNTRY),
    )


@settlement.aggregate
class Address:
    owner_id = Identifier()  # Null for guest checkouts
    full_name = String(required=True, max_length=100)
    phone = String(max_length=20)
    address_line1 = String(required=True, max_length=200)
    address_line2 = String(max_length=200)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default=DEFAULT_COUNTRY)
    address_type = String(choices=AddressType, default=AddressType.HOME.value)
    is_default = Boolean(default=False)
    created_at = DateTime()

    @classmethod
    def create(cls, owner_id=None, is_default=False, **fields):
        return cls(
            owner_id=owner_id,
            full_name=fields["full_name"].strip(),
            phone=(fields.get("phone") or "").strip() or None,
            address_line1=fields["address_line1"].strip(),
            address_line2=(fields.get("address_line2") or "").strip() or None,
            city=(fields.get("city") or "").strip() or None,
            state=(fields.get("state") or "").strip() or None,
            postal_code=str(fields["postal_code"]).strip(),
            country=(fields.get("country") or DEFAULT_COUNTRY).strip(),
            address_type=fields.get("address_type") or AddressType.HOME.value,
            is_default=is_default,
            created_at=datetime.now(UTC),
        )

    @property
    def dedup_key(self) -> tuple:
        return dedup_key(self.to_fields())

    def to_fields(self) -> dict:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "address_type": self.address_type,
        }


@settlement.repository(part_of=Address)
class AddressRepository:
    def find_for_owner(self, owner_id: str) -> list[Address]:
        return self._dao.query.filter(owner_id=str(owner_id)).all().items

    def find_matching(self, owner_id: str, fields: dict) -> Address | None:
        """Return the owner's address whose normalized fields equal ``fields``, if any."""
        key = dedup_key(fields)
        return next((a for a in self.find_for_owner(owner_id) if a.dedup_key == key), None)
