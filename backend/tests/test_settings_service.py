import unittest

from storefront import create_app
from storefront.errors import BadRequestError
from storefront.extensions import db
from storefront.models import PaymentGateway, ShippingSetting, Store, StoreStatus, TaxSetting
from storefront.services import settings_service
from storefront.services.tenant_service import Principal, StoreContext


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        self.store = Store(name="Main", slug="main", status=StoreStatus.ACTIVE, settings={"currency": "INR"}, seo={})
        self.other = Store(name="Second", slug="second", status=StoreStatus.ACTIVE, settings={}, seo={})
        db.session.add_all([self.store, self.other])
        db.session.commit()

        self.store_ctx = StoreContext(self.store.id, Principal.ADMIN)
        self.other_ctx = StoreContext(self.other.id, Principal.ADMIN)

    # -------------------------------------------------------------------------
    # Lazy defaults
    # -------------------------------------------------------------------------

    def test_gateway_defaults_provisioned_once(self):
        gateways = settings_service.get_payment_gateways(self.store_ctx)
        self.assertEqual(
            [g.name for g in gateways],
            ["Razorpay", "Stripe", "PayU", "PayPal", "Cash on Delivery"],
        )
        cod = gateways[-1]
        self.assertTrue(cod.is_active)
        self.assertEqual(cod.credentials["max_amount_cents"], 500000)
        self.assertEqual(cod.credentials["charges_cents"], 2500)

        settings_service.get_payment_gateways(self.store_ctx)
        self.assertEqual(db.session.query(PaymentGateway).filter_by(store_id=self.store.id).count(), 5)
        self.assertEqual(db.session.query(PaymentGateway).filter_by(store_id=self.other.id).count(), 0)

    def test_tax_defaults(self):
        taxes = {t.name: t for t in settings_service.get_tax_settings(self.store_ctx)}
        self.assertEqual(set(taxes), {"GST", "CGST", "SGST"})
        self.assertEqual(taxes["GST"].rate_bps, 1800)
        self.assertTrue(taxes["GST"].is_active)
        self.assertFalse(taxes["CGST"].is_active)

    def test_shipping_defaults(self):
        shipping = settings_service.get_shipping_settings(self.store_ctx)
        self.assertEqual(shipping.free_shipping_threshold_cents, 50000)
        self.assertEqual(shipping.default_shipping_cost_cents, 5000)
        self.assertEqual([z.name for z in shipping.zones], ["Local", "National"])
        self.assertEqual(db.session.query(ShippingSetting).count(), 1)

    # -------------------------------------------------------------------------
    # Payment gateways
    # -------------------------------------------------------------------------

    def test_gateway_credentials_are_merged(self):
        settings_service.upsert_payment_gateway(self.store_ctx, {
            "name": "Razorpay",
            "credentials": {"key_id": "rzp_1", "key_secret": "s1"},
        })
        gateway = settings_service.upsert_payment_gateway(self.store_ctx, {
            "name": "Razorpay",
            "is_active": True,
            "credentials": {"key_id": "rzp_2"},
        })
        self.assertTrue(gateway.is_active)
        self.assertEqual(gateway.credentials, {"key_id": "rzp_2", "key_secret": "s1"})
        self.assertNotIn("key_secret", gateway.to_dict(include_secrets=False)["credentials"])

    def test_gateway_name_cannot_change(self):
        gateway = settings_service.get_gateway_by_name(self.store_ctx, "Stripe")
        with self.assertRaises(BadRequestError) as exc:
            settings_service.upsert_payment_gateway(self.store_ctx, {"id": gateway.id, "name": "PayU"})
        self.assertEqual(exc.exception.message, "Gateway name cannot be changed")

    def test_unknown_gateway_rejected(self):
        with self.assertRaises(BadRequestError):
            settings_service.upsert_payment_gateway(self.store_ctx, {"name": "Bitcoin"})

    # -------------------------------------------------------------------------
    # Taxes
    # -------------------------------------------------------------------------

    def test_tax_rate_accepts_percent_or_bps(self):
        tax = settings_service.upsert_tax_setting(self.store_ctx, {"name": "Cess", "rate": 1.5})
        self.assertEqual(tax.rate_bps, 150)
        tax = settings_service.upsert_tax_setting(self.store_ctx, {"id": tax.id, "rate_bps": 200})
        self.assertEqual(tax.rate_bps, 200)
        self.assertEqual(tax.name, "Cess")

    def test_tax_rate_validation(self):
        for payload in ({"name": "Bad", "rate": 150}, {"name": "Bad", "rate": "abc"}, {"name": "Bad", "rate_bps": -1}):
            with self.assertRaises(BadRequestError):
                settings_service.upsert_tax_setting(self.store_ctx, payload)

    def test_new_tax_requires_name_and_rate(self):
        with self.assertRaises(BadRequestError):
            settings_service.upsert_tax_setting(self.store_ctx, {"rate": 5})
        with self.assertRaises(BadRequestError):
            settings_service.upsert_tax_setting(self.store_ctx, {"name": "VAT"})
        self.assertEqual(db.session.query(TaxSetting).filter_by(name="VAT").count(), 0)

    def test_tax_for_sums_active_lines_half_up(self):
        settings_service.get_tax_settings(self.store_ctx)
        self.assertEqual(settings_service.tax_for(self.store_ctx, 3000), 540)
        # 18% of 1003 = 180.54
        self.assertEqual(settings_service.tax_for(self.store_ctx, 1003), 181)

        cgst = next(t for t in settings_service.get_tax_settings(self.store_ctx) if t.name == "CGST")
        settings_service.upsert_tax_setting(self.store_ctx, {"id": cgst.id, "is_active": True})
        self.assertEqual(settings_service.tax_for(self.store_ctx, 3000), 810)

    # -------------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------------

    def test_shipping_update_is_partial(self):
        shipping = settings_service.update_shipping_settings(self.store_ctx, {"free_shipping_threshold_cents": 100000})
        self.assertEqual(shipping.free_shipping_threshold_cents, 100000)
        self.assertEqual(shipping.default_shipping_cost_cents, 5000)
        self.assertEqual(len(shipping.zones), 2)

    def test_zones_are_replaced(self):
        shipping = settings_service.update_shipping_settings(self.store_ctx, {"zones": [{
            "name": "Metro",
            "max_weight_grams": 5000,
            "rate_cents": 4000,
            "estimated_days": "1 day",
            "cod_available": True,
            "cod_charges_cents": 1000,
        }]})
        self.assertEqual([z.name for z in shipping.zones], ["Metro"])

    def test_zone_requires_fields(self):
        with self.assertRaises(BadRequestError):
            settings_service.update_shipping_settings(self.store_ctx, {"zones": [{"name": "Metro", "rate_cents": 10}]})
        with self.assertRaises(BadRequestError):
            settings_service.update_shipping_settings(self.store_ctx, {"default_shipping_cost_cents": -5})

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    def test_quote_below_threshold_uses_default_cost(self):
        quote = settings_service.quote(self.store_ctx, 3000)
        self.assertEqual(quote["tax_cents"], 540)
        self.assertEqual(quote["shipping_cents"], 5000)
        self.assertEqual(quote["total_cents"], 8540)
        self.assertIsNone(quote["zone"])

    def test_quote_at_threshold_ships_free(self):
        quote = settings_service.quote(self.store_ctx, 50000)
        self.assertEqual(quote["shipping_cents"], 0)
        self.assertEqual(quote["total_cents"], 50000 + 9000)

    def test_quote_zone_rate_and_cod(self):
        quote = settings_service.quote(self.store_ctx, 3000, zone_name="local", payment_method="cod")
        self.assertEqual(quote["zone"], "Local")
        self.assertEqual(quote["cod_charges_cents"], 2500)
        self.assertEqual(quote["shipping_cents"], 3000 + 2500)

    def test_quote_cod_without_zone_uses_gateway_charge(self):
        quote = settings_service.quote(self.store_ctx, 3000, payment_method="cod")
        self.assertEqual(quote["cod_charges_cents"], 2500)
        self.assertEqual(quote["shipping_cents"], 7500)

    def test_quote_rejections(self):
        with self.assertRaises(BadRequestError):
            settings_service.quote(self.store_ctx, 3000, zone_name="Moon")
        with self.assertRaises(BadRequestError):
            settings_service.quote(self.store_ctx, 3000, zone_name="National", payment_method="cod")
        with self.assertRaises(BadRequestError):
            settings_service.quote(self.store_ctx, 500001, payment_method="cod")
        with self.assertRaises(BadRequestError):
            settings_service.quote(self.store_ctx, -1)

    def test_quote_when_cod_disabled(self):
        settings_service.upsert_payment_gateway(self.store_ctx, {"name": "Cash on Delivery", "is_active": False})
        with self.assertRaises(BadRequestError):
            settings_service.quote(self.store_ctx, 3000, payment_method="cod")

    # -------------------------------------------------------------------------
    # Store settings and SEO
    # -------------------------------------------------------------------------

    def test_store_settings_merge_theme(self):
        settings_service.update_store_settings(self.store_ctx, {"theme": {"primary": "#111"}})
        data = settings_service.update_store_settings(self.store_ctx, {
            "theme": {"accent": "#222"},
            "contact_email": "hello@main.test",
        })
        self.assertEqual(data["settings"]["theme"], {"primary": "#111", "accent": "#222"})
        self.assertEqual(data["settings"]["currency"], "INR")
        self.assertEqual(data["contact_email"], "hello@main.test")

    def test_store_settings_reject_unknown_keys(self):
        with self.assertRaises(BadRequestError):
            settings_service.update_store_settings(self.store_ctx, {"slug": "hijack"})
        self.assertEqual(db.session.get(Store, self.store.id).slug, "main")

    def test_seo_merge_and_unknown_keys(self):
        settings_service.update_seo_settings(self.store_ctx, {"meta_title": "Main"})
        seo = settings_service.update_seo_settings(self.store_ctx, {"meta_description": "Best shop"})
        self.assertEqual(seo, {"meta_title": "Main", "meta_description": "Best shop"})
        self.assertEqual(settings_service.get_seo_settings(self.other_ctx), {})
        with self.assertRaises(BadRequestError):
            settings_service.update_seo_settings(self.store_ctx, {"robots": "noindex"})


if __name__ == "__main__":
    unittest.main()
