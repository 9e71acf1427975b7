"""
LocationService -- create, deactivate, reparent and reorder locations.

Responsibility:
    Writes to the locations table after checking the structural rules held
    by ``LocationHierarchy``.  Every write reloads the arena first, so
    checks see the current committed-or-flushed tree.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.

Invariants enforced:
    - Exactly one HQ, with no parent.
    - Branch under HQ, SubBranch under Branch.
    - Reparent never moves a node under itself or its descendants.
    - Deactivation is refused while active children remain.
    - Locations are never deleted.

Failure modes:
    - LocationNotFoundError on unknown ids.
    - InvalidHierarchyError on any structural rule violation.
    - InvalidCurrencyError on an unknown currency code.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from distribution_kernel.config.schema import PricingSettings
from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.currency import normalize_currency
from distribution_kernel.domain.hierarchy import (
    LocationHierarchy,
    LocationNode,
    LocationType,
)
from distribution_kernel.exceptions import InvalidHierarchyError, LocationNotFoundError
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.location import LocationModel
from distribution_kernel.selectors.location_selector import (
    LocationSelector,
    to_location_node,
)
from distribution_kernel.services.base import BaseService

logger = get_logger("services.location")


class LocationService(BaseService[LocationModel]):
    """
    Location tree maintenance.

    Contract:
        Mutations flush; the caller commits.  ``hierarchy()`` always
        reflects the session's current view.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        pricing_settings: PricingSettings | None = None,
    ):
        super().__init__(session, clock)
        self._pricing = pricing_settings or PricingSettings()

    def hierarchy(self) -> LocationHierarchy:
        self.session.flush()
        return LocationSelector(self.session).load_hierarchy()

    def _get_model(self, location_id: UUID) -> LocationModel:
        model = self.session.get(LocationModel, location_id)
        if model is None:
            raise LocationNotFoundError(str(location_id))
        return model

    def create_location(
        self,
        name: str,
        location_type: LocationType | str,
        actor_id: UUID,
        parent_id: UUID | None = None,
        currency: str | None = None,
        country_code: str | None = None,
        display_order: int | None = None,
    ) -> LocationNode:
        """
        Create a location under ``parent_id``.

        HQ defaults to the configured HQ currency; other levels must name
        their currency.  ``display_order`` defaults to the end of the
        sibling group.
        """
        location_type = LocationType(location_type)
        if not name or not name.strip():
            raise InvalidHierarchyError(None, "location name is required")
        if currency is None:
            if location_type != LocationType.HQ:
                raise InvalidHierarchyError(None, "currency is required")
            currency = self._pricing.hq_currency
        currency = normalize_currency(currency)

        self.hierarchy().validate_new_location(location_type, parent_id)

        if display_order is None:
            sibling_filter = (
                LocationModel.parent_id.is_(None)
                if parent_id is None
                else LocationModel.parent_id == parent_id
            )
            display_order = self.session.scalar(
                select(func.count()).select_from(LocationModel).where(sibling_filter)
            ) or 0

        model = LocationModel(
            name=name.strip(),
            location_type=location_type.value,
            parent_id=parent_id,
            currency=currency,
            country_code=country_code.upper() if country_code else None,
            display_order=display_order,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "location_created",
            extra={
                "location_id": str(model.id),
                "location_type": location_type.value,
                "parent_id": str(parent_id) if parent_id else None,
                "currency": currency,
            },
        )
        return to_location_node(model)

    def deactivate_location(self, location_id: UUID, actor_id: UUID) -> LocationNode:
        """Soft-deactivate.  Refused while any direct child is still active."""
        model = self._get_model(location_id)
        active_children = [
            child for child in self.hierarchy().direct_children(location_id)
            if child.is_active
        ]
        if active_children:
            raise InvalidHierarchyError(
                str(location_id),
                f"{len(active_children)} active child location(s) remain",
            )
        model.is_active = False
        model.updated_by_id = actor_id
        self.session.flush()
        logger.info("location_deactivated", extra={"location_id": str(location_id)})
        return to_location_node(model)

    def reparent_location(
        self,
        location_id: UUID,
        new_parent_id: UUID,
        actor_id: UUID,
    ) -> LocationNode:
        model = self._get_model(location_id)
        self.hierarchy().validate_reparent(location_id, new_parent_id)
        old_parent_id = model.parent_id
        model.parent_id = new_parent_id
        model.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "location_reparented",
            extra={
                "location_id": str(location_id),
                "old_parent_id": str(old_parent_id),
                "new_parent_id": str(new_parent_id),
            },
        )
        return to_location_node(model)

    def reorder_children(
        self,
        parent_id: UUID,
        ordered_child_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> list[LocationNode]:
        """
        Rewrite display_order of one sibling group to 0..n-1 in the given
        order.  The ids must be exactly the parent's current children.
        """
        current = {child.id for child in self.hierarchy().direct_children(parent_id)}
        requested = list(ordered_child_ids)
        if len(set(requested)) != len(requested) or set(requested) != current:
            raise InvalidHierarchyError(
                str(parent_id), "ordered ids must be exactly the current children"
            )
        for position, child_id in enumerate(requested):
            child = self._get_model(child_id)
            child.display_order = position
            child.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "locations_reordered",
            extra={"parent_id": str(parent_id), "child_count": len(requested)},
        )
        return self.hierarchy().direct_children(parent_id)
