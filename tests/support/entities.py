"""Entity types shared by the test suite."""

import itertools

from hybridapi.domain.coercion import FieldType
from hybridapi.domain.entities import ArrayStyle, Entity, HybridMode


class Article(Entity):
    endpoint = "/articles"
    fillable = ("title", "status", "price", "views", "published", "tags", "author_id", "created_at", "updated_at")
    casts = {
        "id": FieldType.INTEGER,
        "price": FieldType.FLOAT,
        "views": FieldType.INTEGER,
        "published": FieldType.BOOLEAN,
        "created_at": FieldType.DATETIME,
        "updated_at": FieldType.DATETIME,
    }
    array_styles = {"tags": ArrayStyle.PIPE}


@Article.named_filter()
def published(query):
    return query.where("published", True)


@Article.named_filter("priced_above")
def priced_above(query, amount):
    return query.where("price", ">", amount)


class Author(Entity):
    """Relatable: articles cached under an author are invalidated with it."""

    fillable = ("name", "article_ids", "updated_at")
    casts = {"id": FieldType.INTEGER, "updated_at": FieldType.DATETIME}

    def related_entities(self):
        return [Article({"id": article_id}) for article_id in (self.article_ids or [])]


class Customer(Entity):
    """API uses ``customer_id`` / ``customer_name`` on the wire."""

    endpoint = "customers"
    primary_key = "uuid"
    fillable = ("name", "active", "updated_at")
    casts = {"active": FieldType.BOOLEAN, "updated_at": FieldType.DATETIME}
    api_field_mapping = {"customer_id": "uuid", "customer_name": "name"}
    partial_updates = True
    hybrid_mode = HybridMode.LOCAL_FIRST
    cache_ttl = 120.0


class Product(Entity):
    fillable = ("name", "price", "active", "released_on", "specs", "updated_at")
    casts = {
        "id": FieldType.INTEGER,
        "price": FieldType.FLOAT,
        "active": FieldType.BOOLEAN,
        "released_on": FieldType.DATE,
        "specs": FieldType.JSON,
        "updated_at": FieldType.DATETIME,
    }


class Ticket(Entity):
    """Numeric keys handed out locally, so tickets can be opened offline."""

    fillable = ("subject", "updated_at")
    casts = {"id": FieldType.INTEGER, "updated_at": FieldType.DATETIME}
    identity_factory = itertools.count(501).__next__
