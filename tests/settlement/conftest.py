from types import SimpleNamespace

import pytest
from protean.integrations.pytest import DomainFixture
from settlement.cart import reset_cart_provider, set_cart_provider
from settlement.cart.memory_adapter import InMemoryCartProvider
from settlement.catalog import reset_catalog, set_catalog
from settlement.catalog.memory_adapter import InMemoryCatalog
from settlement.gateway import FakeGateway, reset_gateways, set_gateway
from settlement.notifier import reset_notifier, set_notifier
from settlement.notifier.fake_adapter import FakeNotifier
from settlement.settings import StaticSettingsProvider, StoreSettings, reset_settings_provider, set_settings_provider


@pytest.fixture(scope="session")
def settlement_bed():
    from settlement.domain import settlement

    bed = DomainFixture(settlement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(settlement_bed):
    with settlement_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


def _seed_catalog(catalog: InMemoryCatalog) -> None:
    catalog.add_product(
        "prod-tee",
        name="Cotton Tee",
        sku="TEE-001",
        price="500.00",
        category_id="cat-apparel",
        variants=[
            {"variant_id": "var-tee-xl", "name": "XL", "sku": "TEE-001-XL", "price": "550.00"},
            {"variant_id": "var-tee-s", "name": "S", "sku": None, "price": "0"},
        ],
    )
    catalog.add_product("prod-mug", name="Ceramic Mug", sku="MUG-001", price="150.00", category_id="cat-kitchen")
    catalog.add_product("prod-book", name="Field Notes", sku="BOOK-001", price="300.00", category_id="cat-books")


@pytest.fixture()
def catalog():
    catalog = InMemoryCatalog()
    _seed_catalog(catalog)
    return catalog


@pytest.fixture()
def cart():
    return InMemoryCartProvider()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def gateway():
    """Stands in for Razorpay: same method name, signed callbacks, no network."""
    return FakeGateway(name="razorpay", secret="whsec-test")


@pytest.fixture()
def store_settings():
    return StoreSettings()


@pytest.fixture(autouse=True)
def adapters(catalog, cart, notifier, gateway, store_settings):
    set_catalog(catalog)
    set_cart_provider(cart)
    set_notifier(notifier)
    set_gateway("razorpay", gateway)
    set_settings_provider(StaticSettingsProvider(store_settings))

    yield SimpleNamespace(catalog=catalog, cart=cart, notifier=notifier, gateway=gateway)

    reset_catalog()
    reset_cart_provider()
    reset_notifier()
    reset_gateways()
    reset_settings_provider()


@pytest.fixture()
def shipping_address():
    return {
        "full_name": "Asha Rao",
        "phone": "9876543210",
        "address_line1": "12 MG Road",
        "address_line2": "Near Metro",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
    }
