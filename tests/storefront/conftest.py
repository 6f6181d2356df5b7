import json
from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

from storefront.catalogue.management import AddColorVariant, RegisterProduct, SetStock
from storefront.discount.management import CreateDiscount
from storefront.gateway import get_gateway, reset_gateway
from storefront.notification import get_sender, reset_sender


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _fresh_collaborators():
    """Each test starts with a fresh fake gateway and notification sender."""
    reset_gateway()
    reset_sender()
    yield
    reset_gateway()
    reset_sender()


@pytest.fixture()
def gateway():
    return get_gateway()


@pytest.fixture()
def sender():
    return get_sender()


@pytest.fixture()
def shipping_address():
    return {
        "name": "Asha Rao",
        "address_line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pin_code": "560001",
        "phone": "9876543210",
    }


@pytest.fixture()
def make_product():
    """Register a product with colors and per-size stock.

    ``stock`` maps a color name to ``{size: units}``.
    """
    counter = {"n": 0}

    def _make(price=500.0, stock=None, code=None, name="Classic Tee", category_id=None):
        counter["n"] += 1
        product_id = current_domain.process(
            RegisterProduct(
                code=code or f"TEE-{counter['n']:03d}",
                name=name,
                price=price,
                category_id=category_id,
            ),
            asynchronous=False,
        )
        for color_name, sizes in (stock if stock is not None else {"Navy": {"M": 10}}).items():
            current_domain.process(
                AddColorVariant(
                    product_id=product_id,
                    name=color_name,
                    hex_code="#000080",
                    images=json.dumps([f"https://img.example.com/{color_name.lower()}.jpg"]),
                ),
                asynchronous=False,
            )
            for size, units in sizes.items():
                current_domain.process(
                    SetStock(product_id=product_id, color_name=color_name, size=size, stock=units),
                    asynchronous=False,
                )
        return product_id

    return _make


@pytest.fixture()
def make_discount():
    def _make(code="SAVE10", kind="coupon", discount_type="percentage", value=10.0, **overrides):
        fields = {
            "code": code,
            "kind": kind,
            "discount_type": discount_type,
            "value": value,
            "valid_until": datetime.now(UTC) + timedelta(days=30),
        }
        fields.update(overrides)
        return current_domain.process(CreateDiscount(**fields), asynchronous=False)

    return _make
