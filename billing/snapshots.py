# billing/snapshots.py
"""
Values frozen onto billing documents at generation / sync time.

Customer fields resolve first-match-wins:
quotation override on the deal → linked contact → default.
"""
from dataclasses import dataclass

DEFAULT_CUSTOMER_NAME = "N/A"
UNKNOWN_ITEM_NAME = "Unknown Item"


def _first(*values, default: str = "") -> str:
    for value in values:
        if value:
            return value
    return default


@dataclass(frozen=True)
class CustomerSnapshot:
    name: str
    address: str
    tax_id: str
    phone: str
    email: str

    def as_model_fields(self) -> dict:
        return {
            "customer_name": self.name,
            "customer_address": self.address,
            "customer_tax_id": self.tax_id,
            "customer_phone": self.phone,
            "customer_email": self.email,
        }


def derive_customer_snapshot(deal, contact=None) -> CustomerSnapshot:
    """
    Build the customer block of a document from a deal and its contact.

    Name: quotation name → contact company name → contact full name → "N/A".
    Other fields: quotation value → contact value → "".
    """
    if contact is not None:
        contact_name = _first(contact.company_name, contact.full_name)
        contact_address = contact.address
        contact_tax_id = contact.tax_number
        contact_phone = contact.phone
        contact_email = contact.email
    else:
        contact_name = contact_address = contact_tax_id = contact_phone = contact_email = ""

    return CustomerSnapshot(
        name=_first(deal.quotation_customer_name, contact_name, default=DEFAULT_CUSTOMER_NAME),
        address=_first(deal.quotation_customer_address, contact_address),
        tax_id=_first(deal.quotation_customer_tax_id, contact_tax_id),
        phone=_first(deal.quotation_customer_phone, contact_phone),
        email=_first(deal.quotation_customer_email, contact_email),
    )


@dataclass(frozen=True)
class ItemDescription:
    sku: str
    name: str
    product_description: str


def describe_deal_item(item) -> ItemDescription:
    """
    sku from the product, name from the item (else the product), description
    from the item (else the product).
    """
    product = item.product
    return ItemDescription(
        sku=(product.sku if product else "") or "",
        name=_first(item.name, product.name if product else "", default=UNKNOWN_ITEM_NAME),
        product_description=_first(item.description, product.description if product else ""),
    )
