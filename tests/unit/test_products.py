import math

import pydantic
import pytest

from errors import ProductNotFound, ValidationError
from products import ProductIn, ProductUpdate
from schemas import ProductFilter


@pytest.fixture
def catalog(make_product):
    return [
        make_product("Photocard Holder", price=100, category="accessory", stock_count=5, is_new=True),
        make_product("Sticker Pack", price=50, category="stationery", stock_count=0),
        make_product("Lyric Notebook", price=180, category="stationery", stock_count=12, is_new=False),
        make_product("Mug", price=300, category="lifestyle", stock_count=3, is_new=True),
        make_product("Keyring", price=80, category="accessory", stock_count=20),
    ]


class TestCreate:
    @pytest.mark.parametrize("stock_count, in_stock", [(0, False), (1, True), (25, True)])
    def test_in_stock_follows_stock_count(self, make_product, stock_count, in_stock):
        product = make_product(stock_count=stock_count)
        assert product.in_stock is in_stock
        assert product.created_at == product.updated_at

    def test_assigns_distinct_ids(self, make_product):
        assert make_product().id != make_product().id

    @pytest.mark.parametrize("price", [0, -10])
    def test_rejects_non_positive_price(self, make_product, price):
        with pytest.raises(ValidationError):
            make_product(price=price)

    @pytest.mark.parametrize("price", [math.nan, math.inf, -math.inf])
    def test_rejects_non_finite_price(self, product_store, make_product, price):
        with pytest.raises(ValidationError):
            make_product(price=price)
        assert product_store.all() == []

    def test_rejects_negative_stock(self, product_store, make_product):
        with pytest.raises(ValidationError):
            make_product(stock_count=-1)
        assert product_store.all() == []


class TestList:
    def test_filter_by_category(self, product_store, catalog):
        page = product_store.list(ProductFilter(category="stationery"))
        assert [p.name for p in page.products] == ["Sticker Pack", "Lyric Notebook"]
        assert all(p.category == "stationery" for p in page.products)

    def test_price_range_is_inclusive(self, product_store, catalog):
        page = product_store.list(ProductFilter(min_price=80, max_price=180))
        assert sorted(p.price for p in page.products) == [80, 100, 180]

    def test_search_is_case_insensitive_substring(self, product_store, catalog):
        page = product_store.list(ProductFilter(search="NOTE"))
        assert [p.name for p in page.products] == ["Lyric Notebook"]

    def test_in_stock_and_is_new_filters(self, product_store, catalog):
        out_of_stock = product_store.list(ProductFilter(in_stock=False))
        assert [p.name for p in out_of_stock.products] == ["Sticker Pack"]

        new_in_stock = product_store.list(ProductFilter(in_stock=True, is_new=True))
        assert [p.name for p in new_in_stock.products] == ["Photocard Holder", "Mug"]

    def test_pagination_keeps_store_order(self, product_store, catalog):
        first = product_store.list(page=1, limit=2)
        last = product_store.list(page=3, limit=2)
        assert first.total == 5
        assert first.total_pages == 3
        assert [p.name for p in first.products] == ["Photocard Holder", "Sticker Pack"]
        assert [p.name for p in last.products] == ["Keyring"]

    def test_page_past_the_end_is_empty(self, product_store, catalog):
        page = product_store.list(page=10, limit=12)
        assert page.products == []
        assert page.total == 5

    def test_empty_store(self, product_store):
        page = product_store.list()
        assert page.total == 0
        assert page.total_pages == 0

    @pytest.mark.parametrize("bound", ["min_price", "max_price"])
    def test_filter_rejects_non_finite_bounds(self, bound):
        with pytest.raises(pydantic.ValidationError):
            ProductFilter(**{bound: math.nan})

    @pytest.mark.parametrize("page, limit", [(1, 0), (1, -3), (0, 12)])
    def test_rejects_bad_paging(self, product_store, page, limit):
        with pytest.raises(ValidationError):
            product_store.list(page=page, limit=limit)


class TestUpdateAndDelete:
    def test_get_by_id_missing(self, product_store):
        with pytest.raises(ProductNotFound):
            product_store.get_by_id("missing")

    def test_update_recomputes_in_stock(self, product_store, make_product):
        product = make_product(stock_count=5)
        updated = product_store.update(product.id, ProductUpdate(stock_count=0))
        assert updated.stock_count == 0
        assert updated.in_stock is False

        restocked = product_store.update(product.id, ProductUpdate(stock_count=3))
        assert restocked.in_stock is True
        assert product_store.get_by_id(product.id).stock_count == 3

    def test_update_merges_only_given_fields(self, product_store, make_product):
        product = make_product(name="Mug", price=300)
        updated = product_store.update(product.id, ProductUpdate(price=250))
        assert updated.name == "Mug"
        assert updated.price == 250
        assert updated.created_at == product.created_at
        assert updated.updated_at >= product.updated_at

    def test_update_validates(self, product_store, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            product_store.update(product.id, ProductUpdate(price=0))
        with pytest.raises(ValidationError):
            product_store.update(product.id, ProductUpdate(price=math.nan))
        with pytest.raises(ValidationError):
            product_store.update(product.id, ProductUpdate(stock_count=-2))
        assert product_store.get_by_id(product.id).price == product.price

    def test_update_missing(self, product_store):
        with pytest.raises(ProductNotFound):
            product_store.update("missing", ProductUpdate(name="x"))

    def test_delete_reports_existence(self, product_store, make_product):
        product = make_product()
        assert product_store.delete(product.id) is True
        assert product_store.delete(product.id) is False
        assert product_store.find(product.id) is None


def test_stats(product_store, catalog):
    stats = product_store.stats()
    assert stats.total == 5
    assert stats.in_stock == 4
    assert stats.out_of_stock == 1
    assert stats.new == 2
    assert stats.categories == {"accessory": 2, "stationery": 2, "lifestyle": 1}


def test_create_accepts_model(product_store):
    product = product_store.create(ProductIn(
        name="Tote Bag", price=420, category="lifestyle", image="/images/tote.jpg", stock_count=7,
    ))
    assert product_store.get_by_id(product.id) == product
