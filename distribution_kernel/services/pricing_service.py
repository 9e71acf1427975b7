"""
PricingService -- the pricing cascade over the location tree.

Responsibility:
    Persists per-location prices derived by ``domain/pricing.py``,
    assembles HQ-to-location price chains, and bulk-applies pricing
    templates to Branch locations.

Architecture position:
    Kernel > Services.  Uses ExchangeRateService for FX and
    LocationSelector for the tree.

Invariants enforced:
    - final_price / discounted_price are only ever written from a fresh
      computation over the stored inputs.
    - The exchange rate used is copied onto the config row; later rate
      rows never change an existing price.
    - apply_template is all-or-nothing: every pair is written inside one
      SAVEPOINT and any failure rolls the whole call back.

Failure modes:
    - ProductNotFoundError / LocationNotFoundError on unknown ids.
    - MissingBaseCostError when the product has no HQ base cost.
    - ExchangeRateNotFoundError when a hop crosses currencies without a rate.
    - PricingConfigNotFoundError when a SubBranch's Branch has no config.
    - TemplateApplicationError wrapping the first failing pair of a bulk apply.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from distribution_kernel.config.schema import PricingSettings
from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.currency import normalize_currency
from distribution_kernel.domain.hierarchy import LocationNode, LocationType
from distribution_kernel.domain.pricing import (
    ZERO,
    PriceComputation,
    RoundingPolicy,
    apply_discount,
    compute_derived_price,
    derive_branch_price,
    derive_sub_branch_price,
    validate_discount,
    validate_margin,
    validate_template_margins,
)
from distribution_kernel.exceptions import (
    ChainIncompleteError,
    DistributionKernelError,
    InvalidHierarchyError,
    LocationNotFoundError,
    MissingBaseCostError,
    PricingConfigNotFoundError,
    PricingTemplateNotFoundError,
    TemplateApplicationError,
    ValidationError,
)
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.pricing import (
    PricingConfigModel,
    PricingTemplateApplicationModel,
    PricingTemplateModel,
)
from distribution_kernel.models.product import ProductModel
from distribution_kernel.selectors.location_selector import LocationSelector
from distribution_kernel.services.base import BaseService
from distribution_kernel.services.exchange_rate_service import ExchangeRateService
from distribution_kernel.services.product_service import ProductService

logger = get_logger("services.pricing")

CHAIN_INCOMPLETE = "chain_incomplete"

LEVEL_BRANCH = "branch"
LEVEL_SUB_BRANCH = "sub_branch"


@dataclass(frozen=True)
class PriceHop:
    """One step of a price chain."""

    location_id: UUID
    currency: str
    price: Decimal
    discounted_price: Decimal
    margin_applied: tuple[Decimal, ...]
    source: str


@dataclass(frozen=True)
class PriceChain:
    """
    Prices of one product from HQ down to a target location.

    When a hop has no config, ``error`` is ``"chain_incomplete"``,
    ``broken_at_location_id`` names that hop, and ``hops`` holds the
    prices resolved before it.
    """

    product_id: UUID
    target_location_id: UUID
    hops: tuple[PriceHop, ...]
    error: str | None = None
    broken_at_location_id: UUID | None = None

    @property
    def is_complete(self) -> bool:
        return self.error is None

    def require_complete(self) -> PriceChain:
        if self.error is not None:
            raise ChainIncompleteError(
                str(self.product_id), str(self.broken_at_location_id)
            )
        return self


@dataclass(frozen=True)
class TemplatePreviewRow:
    product_id: UUID
    location_id: UUID
    existing_config_id: UUID | None
    computation: PriceComputation


@dataclass(frozen=True)
class TemplateApplicationResult:
    application_id: UUID
    template_id: UUID
    rows_written: int
    configs_created: int
    configs_updated: int
    exchange_rate: Decimal


class PricingService(BaseService[PricingConfigModel]):
    """
    Pricing cascade resolver.

    Contract:
        Margins and discounts are percents.  ``transfer_cost`` is expressed
        in the currency of the hop's upstream price (HQ currency for a
        Branch config, the Branch's currency for a SubBranch config).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: PricingSettings | None = None,
        rates: ExchangeRateService | None = None,
    ):
        super().__init__(session, clock)
        settings = settings or PricingSettings()
        self.rounding = RoundingPolicy(dict(settings.rounding_increments))
        self.rates = rates or ExchangeRateService(session, self.clock)
        self._locations = LocationSelector(session)
        self._products = ProductService(session, self.clock)

    # ------------------------------------------------------------------
    # Pure computation
    # ------------------------------------------------------------------

    def compute_price(
        self,
        parent_price: Decimal,
        transfer_cost: Decimal,
        exchange_rate: Decimal,
        margins: Sequence[Decimal],
        currency: str,
        discount_percent: Decimal = ZERO,
    ) -> PriceComputation:
        return compute_derived_price(
            parent_price,
            transfer_cost,
            exchange_rate,
            margins,
            currency,
            rounding=self.rounding,
            discount_percent=discount_percent,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _hq(self) -> LocationNode:
        hq = self._locations.get_hq()
        if hq is None:
            raise LocationNotFoundError("HQ")
        return hq

    def _find_config(
        self, product_id: UUID, location_id: UUID
    ) -> PricingConfigModel | None:
        return self.session.scalars(
            select(PricingConfigModel).where(
                PricingConfigModel.product_id == product_id,
                PricingConfigModel.to_location_id == location_id,
            )
        ).first()

    def get_config(self, product_id: UUID, location_id: UUID) -> PricingConfigModel:
        config = self._find_config(product_id, location_id)
        if config is None:
            raise PricingConfigNotFoundError(str(product_id), str(location_id))
        return config

    def _base_cost(self, product: ProductModel) -> Decimal:
        if product.base_cost is None:
            raise MissingBaseCostError(str(product.id))
        return product.base_cost

    def _require_type(self, location: LocationNode, expected: LocationType) -> None:
        if location.location_type != expected:
            raise InvalidHierarchyError(
                str(location.id),
                f"expected a {expected.value} location, "
                f"got {location.location_type.value}",
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _upsert_config(
        self,
        product_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        level: str,
        purchase_price: Decimal,
        transfer_cost: Decimal,
        exchange_rate: Decimal,
        margins: dict[str, Decimal],
        computation: PriceComputation,
        effective_date: date,
        actor_id: UUID,
        template_id: UUID | None = None,
    ) -> tuple[PricingConfigModel, bool]:
        config = self._find_config(product_id, to_location_id)
        created = config is None
        if created:
            config = PricingConfigModel(
                product_id=product_id,
                to_location_id=to_location_id,
                created_by_id=actor_id,
            )
            self.session.add(config)
        else:
            config.updated_by_id = actor_id

        config.from_location_id = from_location_id
        config.level = level
        config.purchase_price = purchase_price
        config.transfer_cost = transfer_cost
        config.exchange_rate = exchange_rate
        config.hq_margin_percent = margins.get("hq", ZERO)
        config.branch_margin_percent = margins.get("branch", ZERO)
        config.sub_branch_margin_percent = margins.get("sub_branch", ZERO)
        config.local_cost = computation.local_cost
        config.calculated_price = computation.calculated_price
        config.final_price = computation.final_price
        config.discount_percent = computation.discount_percent
        config.discounted_price = computation.discounted_price
        config.currency = computation.currency
        config.effective_date = effective_date
        config.template_id = template_id
        self.session.flush()
        return config, created

    def configure_branch_price(
        self,
        product_id: UUID,
        branch_id: UUID,
        hq_margin_percent: Decimal,
        branch_margin_percent: Decimal,
        actor_id: UUID,
        transfer_cost: Decimal = ZERO,
        discount_percent: Decimal = ZERO,
        effective_date: date | None = None,
    ) -> PricingConfigModel:
        """HQ -> Branch price from the product's base cost."""
        effective_date = effective_date or self.clock.today()
        product = self._products.get(product_id)
        branch = self._locations.get(branch_id)
        self._require_type(branch, LocationType.BRANCH)
        hq = self._hq()

        base_cost = self._base_cost(product)
        rate = self.rates.resolve(hq.currency, branch.currency, effective_date)
        computation = derive_branch_price(
            base_cost,
            transfer_cost,
            rate,
            hq_margin_percent,
            branch_margin_percent,
            branch.currency,
            rounding=self.rounding,
            discount_percent=discount_percent,
        )
        config, created = self._upsert_config(
            product_id,
            hq.id,
            branch_id,
            LEVEL_BRANCH,
            base_cost,
            transfer_cost,
            rate,
            {"hq": hq_margin_percent, "branch": branch_margin_percent},
            computation,
            effective_date,
            actor_id,
        )
        logger.info(
            "branch_price_configured",
            extra={
                "product_id": str(product_id),
                "location_id": str(branch_id),
                "final_price": computation.final_price,
                "currency": computation.currency,
                "config_created": created,
            },
        )
        return config

    def configure_sub_branch_price(
        self,
        product_id: UUID,
        sub_branch_id: UUID,
        sub_branch_margin_percent: Decimal,
        actor_id: UUID,
        transfer_cost: Decimal = ZERO,
        discount_percent: Decimal = ZERO,
        effective_date: date | None = None,
    ) -> PricingConfigModel:
        """Branch -> SubBranch price from the Branch's discounted price."""
        effective_date = effective_date or self.clock.today()
        self._products.get(product_id)
        sub_branch = self._locations.get(sub_branch_id)
        self._require_type(sub_branch, LocationType.SUB_BRANCH)
        branch = self._locations.get(sub_branch.parent_id)

        branch_config = self.get_config(product_id, branch.id)
        rate = self.rates.resolve(branch.currency, sub_branch.currency, effective_date)
        computation = derive_sub_branch_price(
            branch_config.discounted_price,
            transfer_cost,
            rate,
            sub_branch_margin_percent,
            sub_branch.currency,
            rounding=self.rounding,
            discount_percent=discount_percent,
        )
        config, created = self._upsert_config(
            product_id,
            branch.id,
            sub_branch_id,
            LEVEL_SUB_BRANCH,
            branch_config.discounted_price,
            transfer_cost,
            rate,
            {"sub_branch": sub_branch_margin_percent},
            computation,
            effective_date,
            actor_id,
        )
        logger.info(
            "sub_branch_price_configured",
            extra={
                "product_id": str(product_id),
                "location_id": str(sub_branch_id),
                "final_price": computation.final_price,
                "currency": computation.currency,
                "config_created": created,
            },
        )
        return config

    def update_discount(
        self,
        product_id: UUID,
        location_id: UUID,
        discount_percent: Decimal,
        actor_id: UUID,
    ) -> PricingConfigModel:
        """Change the discount; final_price is untouched."""
        config = self.get_config(product_id, location_id)
        discount = validate_discount(discount_percent)
        config.discount_percent = discount
        config.discounted_price = apply_discount(config.final_price, discount)
        config.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "pricing_discount_updated",
            extra={
                "product_id": str(product_id),
                "location_id": str(location_id),
                "discount_percent": discount,
            },
        )
        return config

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    def resolve_chain(self, product_id: UUID, target_location_id: UUID) -> PriceChain:
        """
        Walk from HQ to the target.  HQ's price is the product's base cost;
        every later hop reads its PricingConfig.  A missing config stops
        the walk with ``error="chain_incomplete"`` and the partial hops.
        Every hop's config comes from a single statement.
        """
        product = self._products.get(product_id)
        hierarchy = self._locations.load_hierarchy()
        path = hierarchy.breadcrumbs(target_location_id)

        def _broken(hops: list[PriceHop], at: UUID) -> PriceChain:
            logger.info(
                "price_chain_incomplete",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(target_location_id),
                    "broken_at": str(at),
                },
            )
            return PriceChain(
                product_id=product_id,
                target_location_id=target_location_id,
                hops=tuple(hops),
                error=CHAIN_INCOMPLETE,
                broken_at_location_id=at,
            )

        root = path[0]
        if product.base_cost is None:
            return _broken([], root.id)
        hops = [
            PriceHop(
                location_id=root.id,
                currency=root.currency,
                price=product.base_cost,
                discounted_price=product.base_cost,
                margin_applied=(),
                source="base_cost",
            )
        ]
        downstream = [location.id for location in path[1:]]
        configs = {}
        if downstream:
            configs = {
                c.to_location_id: c
                for c in self.session.scalars(
                    select(PricingConfigModel).where(
                        PricingConfigModel.product_id == product_id,
                        PricingConfigModel.to_location_id.in_(downstream),
                    )
                )
            }
        for location in path[1:]:
            config = configs.get(location.id)
            if config is None:
                return _broken(hops, location.id)
            if config.level == LEVEL_BRANCH:
                margins = (config.hq_margin_percent, config.branch_margin_percent)
            else:
                margins = (config.sub_branch_margin_percent,)
            hops.append(
                PriceHop(
                    location_id=location.id,
                    currency=config.currency,
                    price=config.final_price,
                    discounted_price=config.discounted_price,
                    margin_applied=margins,
                    source="pricing_config",
                )
            )
        return PriceChain(
            product_id=product_id,
            target_location_id=target_location_id,
            hops=tuple(hops),
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def create_template(
        self,
        name: str,
        hq_margin_percent: Decimal,
        branch_margin_percent: Decimal,
        target_currency: str,
        actor_id: UUID,
        default_transfer_cost: Decimal = ZERO,
        discount_percent: Decimal = ZERO,
        category: str | None = None,
        description: str | None = None,
    ) -> PricingTemplateModel:
        if not name or not name.strip():
            raise ValidationError("template name is required")
        validate_template_margins(hq_margin_percent, branch_margin_percent)
        discount = validate_discount(discount_percent)
        if default_transfer_cost < ZERO:
            raise ValidationError(
                f"default_transfer_cost must be >= 0, got {default_transfer_cost}"
            )
        template = PricingTemplateModel(
            name=name.strip(),
            hq_margin_percent=hq_margin_percent,
            branch_margin_percent=branch_margin_percent,
            discount_percent=discount,
            target_currency=normalize_currency(target_currency),
            default_transfer_cost=default_transfer_cost,
            category=category,
            description=description,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(template)
        self.session.flush()
        logger.info(
            "pricing_template_created",
            extra={"template_id": str(template.id), "target_currency": template.target_currency},
        )
        return template

    def _active_template(self, template_id: UUID) -> PricingTemplateModel:
        template = self.session.get(PricingTemplateModel, template_id)
        if template is None or not template.is_active:
            raise PricingTemplateNotFoundError(str(template_id))
        return template

    def _template_pair(
        self,
        template: PricingTemplateModel,
        hq: LocationNode,
        product_id: UUID,
        location_id: UUID,
        as_of: date,
    ) -> tuple[PriceComputation, Decimal, Decimal]:
        product = self._products.get(product_id)
        location = self._locations.get(location_id)
        self._require_type(location, LocationType.BRANCH)
        if location.currency != template.target_currency:
            raise InvalidHierarchyError(
                str(location_id),
                f"location currency {location.currency} does not match "
                f"template currency {template.target_currency}",
            )
        base_cost = self._base_cost(product)
        rate = self.rates.resolve(hq.currency, location.currency, as_of)
        computation = derive_branch_price(
            base_cost,
            template.default_transfer_cost,
            rate,
            validate_margin("hq_margin_percent", template.hq_margin_percent),
            validate_margin("branch_margin_percent", template.branch_margin_percent),
            location.currency,
            rounding=self.rounding,
            discount_percent=template.discount_percent,
        )
        return computation, base_cost, rate

    @staticmethod
    def _check_targets(
        location_ids: Sequence[UUID], product_ids: Sequence[UUID]
    ) -> tuple[list[UUID], list[UUID]]:
        """Targets with repeats dropped, first occurrence kept."""
        if not location_ids:
            raise ValidationError("at least one target location is required")
        if not product_ids:
            raise ValidationError("at least one product is required")
        return list(dict.fromkeys(location_ids)), list(dict.fromkeys(product_ids))

    def preview_template(
        self,
        template_id: UUID,
        location_ids: Sequence[UUID],
        product_ids: Sequence[UUID],
        as_of: date | None = None,
    ) -> list[TemplatePreviewRow]:
        """Computed rows for every pair; nothing is written."""
        as_of = as_of or self.clock.today()
        location_ids, product_ids = self._check_targets(location_ids, product_ids)
        template = self._active_template(template_id)
        hq = self._hq()
        rows = []
        for location_id in location_ids:
            for product_id in product_ids:
                try:
                    computation, _, _ = self._template_pair(
                        template, hq, product_id, location_id, as_of
                    )
                except DistributionKernelError as exc:
                    raise TemplateApplicationError(
                        str(template_id), str(product_id), str(location_id),
                        exc.code, str(exc),
                    ) from exc
                existing = self._find_config(product_id, location_id)
                rows.append(
                    TemplatePreviewRow(
                        product_id=product_id,
                        location_id=location_id,
                        existing_config_id=existing.id if existing else None,
                        computation=computation,
                    )
                )
        return rows

    def apply_template(
        self,
        template_id: UUID,
        location_ids: Sequence[UUID],
        product_ids: Sequence[UUID],
        actor_id: UUID,
        as_of: date | None = None,
    ) -> TemplateApplicationResult:
        """
        Create or overwrite the Branch config of every (location, product)
        pair and append one application record.

        Raises:
            TemplateApplicationError: some pair failed; no rows from this
                call remain.
        """
        as_of = as_of or self.clock.today()
        location_ids, product_ids = self._check_targets(location_ids, product_ids)
        template = self._active_template(template_id)
        hq = self._hq()

        created = updated = 0
        last_rate = Decimal("1")
        current = (None, None)
        try:
            with self.session.begin_nested():
                for location_id in location_ids:
                    for product_id in product_ids:
                        current = (product_id, location_id)
                        computation, base_cost, rate = self._template_pair(
                            template, hq, product_id, location_id, as_of
                        )
                        last_rate = rate
                        _, was_created = self._upsert_config(
                            product_id,
                            hq.id,
                            location_id,
                            LEVEL_BRANCH,
                            base_cost,
                            template.default_transfer_cost,
                            rate,
                            {
                                "hq": template.hq_margin_percent,
                                "branch": template.branch_margin_percent,
                            },
                            computation,
                            as_of,
                            actor_id,
                            template_id=template.id,
                        )
                        if was_created:
                            created += 1
                        else:
                            updated += 1

                application = PricingTemplateApplicationModel(
                    template_id=template.id,
                    applied_by_id=actor_id,
                    applied_at=self.clock.now(),
                    products_affected=created + updated,
                    configs_created=created,
                    configs_updated=updated,
                    exchange_rate=last_rate,
                    target_location_ids=[str(i) for i in location_ids],
                    product_ids=[str(i) for i in product_ids],
                )
                self.session.add(application)
                self.session.flush()
        except DistributionKernelError as exc:
            product_id, location_id = current
            logger.warning(
                "pricing_template_rejected",
                extra={
                    "template_id": str(template_id),
                    "product_id": str(product_id),
                    "location_id": str(location_id),
                    "cause_code": exc.code,
                },
            )
            raise TemplateApplicationError(
                str(template_id), str(product_id), str(location_id), exc.code, str(exc)
            ) from exc

        logger.info(
            "pricing_template_applied",
            extra={
                "template_id": str(template_id),
                "configs_created": created,
                "configs_updated": updated,
            },
        )
        return TemplateApplicationResult(
            application_id=application.id,
            template_id=template.id,
            rows_written=created + updated,
            configs_created=created,
            configs_updated=updated,
            exchange_rate=last_rate,
        )
