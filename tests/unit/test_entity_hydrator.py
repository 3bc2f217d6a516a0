"""Unit tests for entity hydration and coercion."""

from datetime import date, datetime, timezone

import pytest

from hybridapi.application.services import EntityHydrator
from hybridapi.domain.exceptions import HydrationError

from tests.support.entities import Article, Customer, Product


@pytest.fixture
def hydrator() -> EntityHydrator:
    return EntityHydrator()


def test_empty_map_hydrates_to_none(hydrator: EntityHydrator):
    assert hydrator.hydrate(Product, {}) is None
    assert hydrator.hydrate(Product, None) is None


def test_string_values_are_coerced_to_declared_types(hydrator: EntityHydrator):
    product = hydrator.hydrate(Product, {"id": "566", "price": "150.50", "active": "1"})

    assert product.id == 566 and isinstance(product.id, int)
    assert product.price == 150.5 and isinstance(product.price, float)
    assert product.active is True


@pytest.mark.parametrize("token, expected", [("yes", True), ("On", True), ("0", False), ("false", False), (0, False)])
def test_boolean_tokens(hydrator: EntityHydrator, token, expected):
    assert hydrator.hydrate(Product, {"id": 1, "active": token}).active is expected


def test_dates_and_json(hydrator: EntityHydrator):
    product = hydrator.hydrate(
        Product, {"id": 1, "released_on": "2024-03-01", "specs": '{"weight": 2}'}
    )
    assert product.released_on == date(2024, 3, 1)
    assert product.specs == {"weight": 2}

    article = hydrator.hydrate(Article, {"id": 1, "updated_at": "2024-03-01T10:00:00Z"})
    assert article.updated_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)


def test_absent_fields_stay_unset(hydrator: EntityHydrator):
    product = hydrator.hydrate(Product, {"id": 1})
    assert not product.has("price")
    assert product.price is None
    assert product.attributes == {"id": 1}


def test_undeclared_fields_pass_through(hydrator: EntityHydrator):
    product = hydrator.hydrate(Product, {"id": 1, "colour": "red"})
    assert product.get("colour") == "red"


def test_hydrated_entity_exists_and_is_clean(hydrator: EntityHydrator):
    product = hydrator.hydrate(Product, {"id": "3", "name": "Lamp"})
    assert product.exists is True
    assert product.is_dirty() is False


def test_api_field_mapping_is_applied(hydrator: EntityHydrator):
    customer = hydrator.hydrate(Customer, {"customer_id": "c-1", "customer_name": "Ada", "active": "true"})
    assert customer.key == "c-1"
    assert customer.name == "Ada"
    assert customer.active is True


def test_uncoercible_value_raises(hydrator: EntityHydrator):
    with pytest.raises(HydrationError) as exc_info:
        hydrator.hydrate(Product, {"id": 1, "price": "cheap"})
    assert exc_info.value.field == "price"
    assert exc_info.value.entity_type == "product"


def test_missing_identity_raises(hydrator: EntityHydrator):
    with pytest.raises(HydrationError):
        hydrator.hydrate(Product, {"name": "Orphan"})


def test_hydrate_many_drops_bad_records(hydrator: EntityHydrator):
    products = hydrator.hydrate_many(
        Product,
        [{"id": 1}, {"id": 2, "price": "not-a-number"}, {}, {"id": 3, "active": "maybe"}, {"id": "4"}],
    )
    assert [p.id for p in products] == [1, 4]
