"""
Catalog and customer tests.

Products, product types, categories, admin customer management, customer bank
details (the refund destinations) and the wishlist.
"""

import pytest

from storefront.errors import BadRequestError, ConflictError, NotFoundError
from storefront.extensions import db
from storefront.models import CustomerBankDetail, Product, WishlistItem
from storefront.services import (
    category_service,
    customer_service,
    order_service,
    product_service,
    product_type_service,
    wishlist_service,
)
from storefront.services.tenant_service import Principal, StoreContext

from conftest import auth_headers, get_admin_token, get_customer_token


def _customer_ctx(customer):
    return StoreContext(customer.store_id, Principal.CUSTOMER, customer=customer, source="credential")


# =============================================================================
# PRODUCTS
# =============================================================================

class TestProducts:

    def test_create_and_update(self, ctx_a):
        product = product_service.create_product(ctx_a, {
            "name": "Acme Magnet",
            "sku": "ACME-MAG",
            "price_cents": 4999,
            "stock_quantity": 3,
        })
        assert product.store_id == ctx_a.store_id

        updated = product_service.update_product(ctx_a, product.id, {"price_cents": 4500, "is_featured": True})
        assert updated.price_cents == 4500
        assert updated.is_featured is True
        assert updated.name == "Acme Magnet"

    @pytest.mark.parametrize("payload,message", [
        ({"name": "X"}, "Missing required fields: price_cents"),
        ({"name": "X", "price_cents": 10, "store_id": 2}, "Field not allowed: store_id"),
        ({"name": "X", "price_cents": -1}, "price_cents must be >= 0"),
        ({"name": "X", "price_cents": 10.5}, "price_cents must be an integer, not a decimal"),
        ({"name": "X", "price_cents": 10, "status": "hidden"}, "status must be one of: active, draft, archived"),
    ])
    def test_create_validation(self, ctx_a, payload, message):
        with pytest.raises(BadRequestError) as exc:
            product_service.create_product(ctx_a, payload)
        assert exc.value.message == message

    def test_sku_unique_per_store(self, ctx_a, ctx_b, product_a):
        with pytest.raises(ConflictError) as exc:
            product_service.create_product(ctx_a, {"name": "Copy", "sku": "ACME-001", "price_cents": 1})
        assert exc.value.message == "SKU already exists in this store"

        other = product_service.create_product(ctx_b, {"name": "Copy", "sku": "ACME-001", "price_cents": 1})
        assert other.store_id == ctx_b.store_id

    def test_foreign_category_rejected(self, ctx_a, ctx_b):
        category = category_service.create_category(ctx_b, {"name": "Widgets"})
        with pytest.raises(NotFoundError):
            product_service.create_product(ctx_a, {"name": "X", "price_cents": 1, "category_id": category.id})

    def test_public_listing_shows_active_only(self, client, ctx_a, product_a):
        draft = product_service.create_product(ctx_a, {"name": "Secret", "price_cents": 1, "status": "draft"})

        listed = client.get('/api/products/public?store=acme').json
        assert [p["sku"] for p in listed["items"]] == ["ACME-001"]
        assert client.get(f'/api/products/public/{draft.id}?store=acme').status_code == 404
        assert client.get(f'/api/products/public/{product_a.id}?store=acme').status_code == 200

    def test_admin_listing_filters_by_status_and_search(self, ctx_a, product_a, product_a2):
        product_service.create_product(ctx_a, {"name": "Old Anvil", "price_cents": 1, "status": "archived"})
        assert product_service.list_products(ctx_a, status="archived")["pagination"]["total"] == 1
        skus = [p["sku"] for p in product_service.list_products(ctx_a, search="rocket")["items"]]
        assert skus == ["ACME-002"]

    def test_stock_correction_route(self, client, admin_a, product_a):
        token = get_admin_token(client, admin_a.email)
        response = client.put(
            f'/api/products/{product_a.id}/stock',
            json={'quantity': 42, 'track_quantity': False},
            headers=auth_headers(token),
        )
        assert response.status_code == 200

        db.session.expire_all()
        product = db.session.get(Product, product_a.id)
        assert product.stock_quantity == 42
        assert product.track_quantity is False

    @pytest.mark.parametrize("quantity", [-1, "5", 1.5, True])
    def test_stock_correction_rejects_bad_quantity(self, client, admin_a, product_a, quantity):
        token = get_admin_token(client, admin_a.email)
        response = client.put(
            f'/api/products/{product_a.id}/stock',
            json={'quantity': quantity},
            headers=auth_headers(token),
        )
        assert response.status_code == 400

    def test_create_route(self, client, admin_a):
        token = get_admin_token(client, admin_a.email)
        response = client.post(
            '/api/products',
            json={'name': 'Acme Spring', 'price_cents': 250},
            headers=auth_headers(token),
        )
        assert response.status_code == 201
        assert response.json["store_id"] == admin_a.store_id


# =============================================================================
# CATEGORIES
# =============================================================================

class TestCategories:

    def test_slug_derived_from_name(self, ctx_a):
        category = category_service.create_category(ctx_a, {"name": "Power Tools & More"})
        assert category.slug == "power-tools-more"

    def test_duplicate_slug_conflicts(self, ctx_a, ctx_b):
        category_service.create_category(ctx_a, {"name": "Tools"})
        with pytest.raises(ConflictError):
            category_service.create_category(ctx_a, {"name": "TOOLS"})
        assert category_service.create_category(ctx_b, {"name": "Tools"}).slug == "tools"

    def test_category_cannot_be_its_own_parent(self, ctx_a):
        category = category_service.create_category(ctx_a, {"name": "Tools"})
        with pytest.raises(BadRequestError):
            category_service.update_category(ctx_a, category.id, {"parent_id": category.id})

    def test_delete_with_products_conflicts(self, ctx_a):
        category = category_service.create_category(ctx_a, {"name": "Tools"})
        product_service.create_product(ctx_a, {"name": "Hammer", "price_cents": 1, "category_id": category.id})
        with pytest.raises(ConflictError) as exc:
            category_service.delete_category(ctx_a, category.id)
        assert exc.value.message == "Category still has products"

    def test_delete_detaches_children(self, ctx_a):
        parent = category_service.create_category(ctx_a, {"name": "Tools"})
        child = category_service.create_category(ctx_a, {"name": "Saws", "parent_id": parent.id})
        category_service.delete_category(ctx_a, parent.id)
        assert category_service.get_category(ctx_a, child.id).parent_id is None

    def test_public_lists_active_only(self, client, ctx_a):
        category_service.create_category(ctx_a, {"name": "Visible"})
        category_service.create_category(ctx_a, {"name": "Hidden", "is_active": False})
        listed = client.get('/api/categories/public?store=acme').json
        assert [c["name"] for c in listed] == ["Visible"]


# =============================================================================
# PRODUCT TYPES
# =============================================================================

class TestProductTypes:

    def test_value_is_lowercased_name(self, ctx_a):
        product_type = product_type_service.create_product_type(ctx_a, {"name": "Clothing"})
        assert product_type.value == "clothing"
        assert product_type.is_active is True

    def test_duplicate_name_conflicts_within_store(self, ctx_a, ctx_b):
        product_type_service.create_product_type(ctx_a, {"name": "Books"})
        with pytest.raises(ConflictError):
            product_type_service.create_product_type(ctx_a, {"name": "BOOKS"})
        assert product_type_service.create_product_type(ctx_b, {"name": "Books"}).store_id == ctx_b.store_id

    def test_rename_updates_value_and_checks_conflicts(self, ctx_a):
        books = product_type_service.create_product_type(ctx_a, {"name": "Books"})
        product_type_service.create_product_type(ctx_a, {"name": "Music"})

        renamed = product_type_service.update_product_type(ctx_a, books.id, {"name": "Comics"})
        assert renamed.value == "comics"
        with pytest.raises(ConflictError):
            product_type_service.update_product_type(ctx_a, books.id, {"name": "music"})

    def test_product_references_type_in_same_store(self, ctx_a, ctx_b):
        mine = product_type_service.create_product_type(ctx_a, {"name": "Tools"})
        theirs = product_type_service.create_product_type(ctx_b, {"name": "Toys"})

        product = product_service.create_product(ctx_a, {
            "name": "Wrench", "price_cents": 900, "product_type_id": mine.id,
        })
        assert product.to_dict()["product_type_id"] == mine.id
        with pytest.raises(NotFoundError):
            product_service.create_product(ctx_a, {
                "name": "Kite", "price_cents": 900, "product_type_id": theirs.id,
            })

    def test_products_filter_by_type(self, ctx_a, product_a):
        tools = product_type_service.create_product_type(ctx_a, {"name": "Tools"})
        product_service.update_product(ctx_a, product_a.id, {"product_type_id": tools.id})
        product_service.create_product(ctx_a, {"name": "Loose", "price_cents": 100})

        listed = product_service.list_products(ctx_a, product_type_id=tools.id)
        assert [p["sku"] for p in listed["items"]] == ["ACME-001"]

    def test_delete_in_use_conflicts(self, ctx_a, product_a):
        tools = product_type_service.create_product_type(ctx_a, {"name": "Tools"})
        product_service.update_product(ctx_a, product_a.id, {"product_type_id": tools.id})
        with pytest.raises(ConflictError):
            product_type_service.delete_product_type(ctx_a, tools.id)

        product_service.update_product(ctx_a, product_a.id, {"product_type_id": None})
        product_type_service.delete_product_type(ctx_a, tools.id)
        assert product_type_service.list_product_types(ctx_a) == []

    def test_routes(self, client, admin_a, store_b):
        token = get_admin_token(client, admin_a.email)
        created = client.post('/api/product-types', json={'name': 'Garden'}, headers=auth_headers(token))
        assert created.status_code == 201
        client.post('/api/product-types', json={'name': 'Retired', 'is_active': False}, headers=auth_headers(token))

        admin_list = client.get('/api/product-types', headers=auth_headers(token)).json
        assert [t["name"] for t in admin_list] == ["Garden", "Retired"]

        public = client.get('/api/product-types/public?store=acme').json
        assert [t["value"] for t in public] == ["garden"]
        assert client.get('/api/product-types/public?store=other').json == []

        missing = client.post('/api/product-types', json={}, headers=auth_headers(token))
        assert missing.status_code == 400


# =============================================================================
# CUSTOMERS (ADMIN)
# =============================================================================

class TestCustomerManagement:

    def test_create_customer_without_password(self, ctx_a):
        customer = customer_service.create_customer(ctx_a, {"email": "Guest@Example.com", "first_name": "Gus"})
        assert customer.email == "guest@example.com"
        assert customer.password_hash is None

    def test_duplicate_email_in_store_conflicts(self, ctx_a, customer_a):
        with pytest.raises(ConflictError):
            customer_service.create_customer(ctx_a, {"email": customer_a.email, "first_name": "Again"})

    def test_delete_customer_with_orders_conflicts(self, ctx_a, customer_a, product_a):
        order_service.create_order(ctx_a, {
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        with pytest.raises(ConflictError):
            customer_service.delete_customer(ctx_a, customer_a.id)

    def test_delete_customer_without_orders(self, ctx_a, customer_a, bank_detail_a):
        customer_service.delete_customer(ctx_a, customer_a.id)
        with pytest.raises(NotFoundError):
            customer_service.get_customer(ctx_a, customer_a.id)
        assert db.session.query(CustomerBankDetail).count() == 0

    def test_list_search(self, ctx_a, customer_a):
        customer_service.create_customer(ctx_a, {"email": "zed@example.com", "first_name": "Zed"})
        result = customer_service.list_customers(ctx_a, search="alice")
        assert [c["email"] for c in result["items"]] == ["alice@example.com"]

    def test_profile_update(self, client, customer_a):
        token = get_customer_token(client, "acme", customer_a.email)
        response = client.put(
            '/api/account/profile',
            json={'phone': '+91 99999 00000', 'email': 'ignored@example.com'},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        assert response.json["phone"] == "+91 99999 00000"
        assert response.json["email"] == "alice@example.com"

    def test_profile_rejects_blank_first_name(self, customer_a):
        with pytest.raises(BadRequestError):
            customer_service.update_profile(_customer_ctx(customer_a), {"first_name": "  "})


# =============================================================================
# BANK DETAILS
# =============================================================================

class TestBankDetails:

    BANK = {
        "account_holder_name": "Alice Tester",
        "bank_name": "Union Bank",
        "account_number": "999988887777",
        "ifsc_code": "UBIN0000002",
    }

    def test_first_detail_becomes_default(self, customer_a):
        detail = customer_service.add_bank_detail(_customer_ctx(customer_a), dict(self.BANK))
        assert detail.is_default is True

    def test_default_moves_on_request(self, customer_a, bank_detail_a):
        ctx = _customer_ctx(customer_a)
        second = customer_service.add_bank_detail(ctx, dict(self.BANK, is_default=True))
        db.session.expire_all()
        assert db.session.get(CustomerBankDetail, bank_detail_a.id).is_default is False
        assert second.is_default is True

        customer_service.set_default_bank_detail(ctx, bank_detail_a.id)
        db.session.expire_all()
        assert db.session.get(CustomerBankDetail, bank_detail_a.id).is_default is True
        assert db.session.get(CustomerBankDetail, second.id).is_default is False

    def test_upi_only_is_accepted(self, customer_a):
        detail = customer_service.add_bank_detail(_customer_ctx(customer_a), {"upi_id": "alice@upi"})
        assert detail.upi_id == "alice@upi"

    def test_incomplete_details_rejected(self, customer_a):
        with pytest.raises(BadRequestError):
            customer_service.add_bank_detail(_customer_ctx(customer_a), {"bank_name": "Union Bank"})

    def test_deleting_default_promotes_next(self, customer_a, bank_detail_a):
        ctx = _customer_ctx(customer_a)
        second = customer_service.add_bank_detail(ctx, dict(self.BANK))
        assert second.is_default is False

        customer_service.delete_bank_detail(ctx, bank_detail_a.id)
        db.session.expire_all()
        assert db.session.get(CustomerBankDetail, bank_detail_a.id) is None
        assert db.session.get(CustomerBankDetail, second.id).is_default is True

    def test_other_customers_detail_not_found(self, client, customer_a, bank_detail_a, customer_b):
        token = get_customer_token(client, "other", customer_b.email)
        response = client.delete(f'/api/account/bank-details/{bank_detail_a.id}', headers=auth_headers(token))
        assert response.status_code == 404

    def test_routes(self, client, customer_a):
        token = get_customer_token(client, "acme", customer_a.email)
        created = client.post('/api/account/bank-details', json=dict(self.BANK), headers=auth_headers(token))
        assert created.status_code == 201
        listed = client.get('/api/account/bank-details', headers=auth_headers(token)).json
        assert [d["id"] for d in listed] == [created.json["id"]]


# =============================================================================
# WISHLIST
# =============================================================================

class TestWishlist:

    def test_add_list_and_remove(self, customer_a, product_a, product_a2):
        ctx = _customer_ctx(customer_a)
        wishlist_service.add_to_wishlist(ctx, product_a.id)
        wishlist_service.add_to_wishlist(ctx, product_a2.id)

        assert {i.product_id for i in wishlist_service.list_wishlist(ctx)} == {product_a.id, product_a2.id}
        assert wishlist_service.in_wishlist(ctx, product_a.id) is True

        wishlist_service.remove_from_wishlist(ctx, product_a.id)
        assert [i.product_id for i in wishlist_service.list_wishlist(ctx)] == [product_a2.id]
        assert wishlist_service.in_wishlist(ctx, product_a.id) is False

    def test_duplicate_rejected(self, customer_a, product_a):
        ctx = _customer_ctx(customer_a)
        wishlist_service.add_to_wishlist(ctx, product_a.id)
        with pytest.raises(ConflictError) as exc:
            wishlist_service.add_to_wishlist(ctx, product_a.id)
        assert exc.value.message == "Product already exists in wishlist"

    def test_missing_product_id_rejected(self, customer_a):
        with pytest.raises(BadRequestError):
            wishlist_service.add_to_wishlist(_customer_ctx(customer_a), None)

    def test_other_store_product_not_found(self, customer_a, product_b):
        with pytest.raises(NotFoundError):
            wishlist_service.add_to_wishlist(_customer_ctx(customer_a), product_b.id)

    def test_lists_are_per_customer(self, db_session, customer_a, customer_b, product_a, product_b):
        wishlist_service.add_to_wishlist(_customer_ctx(customer_a), product_a.id)
        wishlist_service.add_to_wishlist(_customer_ctx(customer_b), product_b.id)

        assert [i.product_id for i in wishlist_service.list_wishlist(_customer_ctx(customer_a))] == [product_a.id]
        with pytest.raises(NotFoundError):
            wishlist_service.remove_from_wishlist(_customer_ctx(customer_a), product_b.id)

    def test_deleting_product_drops_wishlist_rows(self, ctx_a, customer_a, product_a):
        wishlist_service.add_to_wishlist(_customer_ctx(customer_a), product_a.id)
        product_service.delete_product(ctx_a, product_a.id)
        assert db.session.query(WishlistItem).count() == 0

    def test_routes(self, client, customer_a, product_a):
        token = get_customer_token(client, "acme", customer_a.email)

        added = client.post('/api/wishlist', json={'product_id': product_a.id}, headers=auth_headers(token))
        assert added.status_code == 201
        assert added.json["product"]["sku"] == "ACME-001"
        again = client.post('/api/wishlist', json={'product_id': product_a.id}, headers=auth_headers(token))
        assert again.status_code == 409

        listed = client.get('/api/wishlist', headers=auth_headers(token)).json
        assert listed["count"] == 1
        assert client.get(f'/api/wishlist/check/{product_a.id}', headers=auth_headers(token)).json == {
            "in_wishlist": True
        }

        assert client.delete('/api/wishlist', headers=auth_headers(token)).json["removed"] == 1
        assert client.delete(f'/api/wishlist/{product_a.id}', headers=auth_headers(token)).status_code == 404

    def test_admin_token_rejected(self, client, admin_a):
        token = get_admin_token(client, admin_a.email)
        assert client.get('/api/wishlist', headers=auth_headers(token)).status_code == 401
