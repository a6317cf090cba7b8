"""
Plan catalog

Static description of what each subscription tier includes. Entitlement
flags are never stored on tenants; every check derives them from the tier
through a PlanCatalog instance injected into the caller.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType


class PlanTier(str, enum.Enum):
    essential = "essential"
    professional = "professional"
    premium = "premium"


# Boolean entitlements a tier may grant
FEATURES = (
    "has_financial_dashboard",
    "has_advanced_reports",
    "has_custom_themes",
    "has_ai_bot",
    "has_support",
    "has_auto_confirmation",
    "has_bulk_actions",
    "has_backup",
)


@dataclass(frozen=True)
class PlanFeatures:
    tier: PlanTier
    name: str
    price: int  # cents, BRL
    max_professionals: int
    has_financial_dashboard: bool = False
    has_advanced_reports: bool = False
    has_custom_themes: bool = False
    has_ai_bot: bool = False
    has_support: bool = False
    has_auto_confirmation: bool = False
    has_bulk_actions: bool = False
    has_backup: bool = False
    features: tuple[str, ...] = ()
    limitations: tuple[str, ...] = ()

    def grants(self, feature: str) -> bool:
        if feature not in FEATURES:
            raise KeyError(f"Unknown feature: {feature}")
        return getattr(self, feature) is True

    def to_dict(self) -> dict:
        data = {
            "tier": self.tier.value,
            "name": self.name,
            "price": self.price,
            "max_professionals": self.max_professionals,
            "features": list(self.features),
            "limitations": list(self.limitations),
        }
        data.update({name: getattr(self, name) for name in FEATURES})
        return data


DEFAULT_PLANS = (
    PlanFeatures(
        tier=PlanTier.essential,
        name="Essencial",
        price=2990,
        max_professionals=1,
        features=(
            "Dashboard comum",
            "Agendamentos do dia e histórico",
            "Serviços ilimitados",
            "1 profissional cadastrado",
            "Página pública",
        ),
        limitations=(
            "Sem dashboard financeiro",
            "Sem lembrete automático 1h antes",
            "Sem suporte",
            "Sem backup automático",
        ),
    ),
    PlanFeatures(
        tier=PlanTier.professional,
        name="Profissional",
        price=4390,
        max_professionals=3,
        has_financial_dashboard=True,
        has_custom_themes=True,
        has_support=True,
        has_auto_confirmation=True,
        has_bulk_actions=True,
        features=(
            "Dashboard financeiro + todas as funções do Essencial",
            "Até 3 profissionais cadastrados",
            "Lembrete automático 1h antes + e-mail de confirmação",
            "Tema personalizado",
            "Suporte completo",
        ),
        limitations=(
            "Sem relatórios avançados",
            "Sem robô de atendimento 24h",
            "Sem backup automático",
        ),
    ),
    PlanFeatures(
        tier=PlanTier.premium,
        name="Premium",
        price=7990,
        max_professionals=999,
        has_financial_dashboard=True,
        has_advanced_reports=True,
        has_custom_themes=True,
        has_ai_bot=True,
        has_support=True,
        has_auto_confirmation=True,
        has_bulk_actions=True,
        has_backup=True,
        features=(
            "Dashboard financeiro",
            "Relatórios completos",
            "Profissionais ilimitados",
            "Robô de atendimento 24h",
            "Lembrete automático 1h antes",
            "E-mail de confirmação",
            "Tema personalizado",
            "Suporte 24h",
            "Backup automático mensal",
            "Todas as funcionalidades",
        ),
    ),
)


@dataclass(frozen=True)
class PlanCatalog:
    """Immutable tier → entitlements lookup."""

    plans: Mapping[PlanTier, PlanFeatures]
    product_plans: Mapping[str, PlanTier] = field(default_factory=lambda: MappingProxyType({}))
    default_tier: PlanTier = PlanTier.essential

    @classmethod
    def build(cls, plans=DEFAULT_PLANS, product_plans: Mapping[str, str] | None = None) -> "PlanCatalog":
        return cls(
            plans=MappingProxyType({plan.tier: plan for plan in plans}),
            product_plans=MappingProxyType(
                {product: PlanTier(tier) for product, tier in (product_plans or {}).items()}
            ),
        )

    def get(self, tier: PlanTier | str | None) -> PlanFeatures:
        """Return a tier's plan, falling back to the default tier for unknown values."""
        try:
            return self.plans[PlanTier(tier)]
        except (ValueError, KeyError):
            return self.plans[self.default_tier]

    def is_known_tier(self, tier: str | None) -> bool:
        return tier in {t.value for t in self.plans}

    def can_access(self, tier: PlanTier | str | None, feature: str) -> bool:
        return self.get(tier).grants(feature)

    def can_add_professional(self, tier: PlanTier | str | None, current_count: int) -> bool:
        return current_count < self.get(tier).max_professionals

    def required_tier(self, feature: str) -> PlanTier | None:
        """Return the cheapest tier granting a feature."""
        granting = [plan for plan in self.plans.values() if plan.grants(feature)]
        if not granting:
            return None
        return min(granting, key=lambda plan: plan.price).tier

    def upgrade_message(self, required_tier: PlanTier | str) -> str:
        return f"Recurso disponível apenas no plano {self.get(required_tier).name}"

    def tier_for_product(self, product_id: str | None) -> PlanTier:
        if not product_id:
            return self.default_tier
        return self.product_plans.get(product_id, self.default_tier)

    def product_for_tier(self, tier: PlanTier | str) -> str | None:
        tier = self.get(tier).tier
        return next((product for product, mapped in self.product_plans.items() if mapped is tier), None)

    def all(self) -> list[PlanFeatures]:
        return sorted(self.plans.values(), key=lambda plan: plan.price)


@lru_cache
def get_plan_catalog() -> PlanCatalog:
    """FastAPI dependency returning the catalog configured from settings."""
    from salon.config import get_settings

    return PlanCatalog.build(product_plans=get_settings().stripe_product_plans)
