"""
Tests for the plan catalog
"""

from dataclasses import FrozenInstanceError

import pytest

from salon.plans import DEFAULT_PLANS, FEATURES, PlanCatalog, PlanTier


@pytest.fixture
def plan_catalog() -> PlanCatalog:
    return PlanCatalog.build(product_plans={"prod_SqqVGzUIvJPVpt": "essential", "prod_premium": "premium"})


class TestPlanLookup:
    def test_get_known_tier(self, plan_catalog):
        plan = plan_catalog.get("professional")

        assert plan.tier is PlanTier.professional
        assert plan.price == 4390
        assert plan.max_professionals == 3

    @pytest.mark.parametrize("tier", [None, "", "basic", "enterprise"])
    def test_unknown_tier_falls_back_to_essential(self, plan_catalog, tier):
        assert plan_catalog.get(tier).tier is PlanTier.essential

    def test_all_sorted_by_price(self, plan_catalog):
        assert [plan.tier for plan in plan_catalog.all()] == [
            PlanTier.essential,
            PlanTier.professional,
            PlanTier.premium,
        ]

    def test_is_known_tier(self, plan_catalog):
        assert plan_catalog.is_known_tier("premium") is True
        assert plan_catalog.is_known_tier("gold") is False
        assert plan_catalog.is_known_tier(None) is False


class TestEntitlements:
    def test_essential_grants_nothing(self, plan_catalog):
        assert not any(plan_catalog.can_access("essential", feature) for feature in FEATURES)

    def test_premium_grants_everything(self, plan_catalog):
        assert all(plan_catalog.can_access("premium", feature) for feature in FEATURES)

    def test_professional_entitlements(self, plan_catalog):
        assert plan_catalog.can_access("professional", "has_financial_dashboard") is True
        assert plan_catalog.can_access("professional", "has_bulk_actions") is True
        assert plan_catalog.can_access("professional", "has_advanced_reports") is False
        assert plan_catalog.can_access("professional", "has_backup") is False

    def test_unknown_feature_raises(self, plan_catalog):
        with pytest.raises(KeyError):
            plan_catalog.can_access("premium", "has_teleportation")

    def test_can_add_professional_respects_limit(self, plan_catalog):
        assert plan_catalog.can_add_professional("essential", 0) is True
        assert plan_catalog.can_add_professional("essential", 1) is False
        assert plan_catalog.can_add_professional("professional", 2) is True
        assert plan_catalog.can_add_professional("professional", 3) is False

    def test_required_tier_is_cheapest_granting_tier(self, plan_catalog):
        assert plan_catalog.required_tier("has_financial_dashboard") is PlanTier.professional
        assert plan_catalog.required_tier("has_ai_bot") is PlanTier.premium

    def test_upgrade_message_names_plan(self, plan_catalog):
        assert plan_catalog.upgrade_message("premium") == "Recurso disponível apenas no plano Premium"


class TestProducts:
    def test_tier_for_known_product(self, plan_catalog):
        assert plan_catalog.tier_for_product("prod_premium") is PlanTier.premium

    @pytest.mark.parametrize("product", [None, "", "prod_unknown"])
    def test_tier_for_unknown_product_is_essential(self, plan_catalog, product):
        assert plan_catalog.tier_for_product(product) is PlanTier.essential

    def test_product_for_tier(self, plan_catalog):
        assert plan_catalog.product_for_tier("premium") == "prod_premium"
        assert plan_catalog.product_for_tier("professional") is None


class TestImmutability:
    def test_plan_features_are_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_PLANS[0].price = 0

    def test_catalog_mapping_is_read_only(self, plan_catalog):
        with pytest.raises(TypeError):
            plan_catalog.plans[PlanTier.essential] = DEFAULT_PLANS[2]

    def test_to_dict_includes_flags(self, plan_catalog):
        data = plan_catalog.get("premium").to_dict()

        assert data["tier"] == "premium"
        assert data["has_backup"] is True
        assert "Backup automático mensal" in data["features"]
