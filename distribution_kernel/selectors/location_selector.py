"""Location queries: load the whole tree into a LocationHierarchy arena."""

from uuid import UUID

from sqlalchemy import select

from distribution_kernel.domain.hierarchy import (
    LocationHierarchy,
    LocationNode,
    LocationType,
)
from distribution_kernel.exceptions import LocationNotFoundError
from distribution_kernel.models.location import LocationModel
from distribution_kernel.selectors.base import BaseSelector


def to_location_node(model: LocationModel) -> LocationNode:
    return LocationNode(
        id=model.id,
        name=model.name,
        location_type=LocationType(model.location_type),
        parent_id=model.parent_id,
        currency=model.currency,
        display_order=model.display_order,
        is_active=model.is_active,
    )


class LocationSelector(BaseSelector[LocationModel]):
    """Read access to the location table."""

    def load_hierarchy(self) -> LocationHierarchy:
        """Every location (active or not) in one query, as an arena."""
        rows = self.session.scalars(select(LocationModel)).all()
        return LocationHierarchy(to_location_node(row) for row in rows)

    def get(self, location_id: UUID) -> LocationNode:
        """
        Raises:
            LocationNotFoundError: unknown id.
        """
        model = self.session.get(LocationModel, location_id)
        if model is None:
            raise LocationNotFoundError(str(location_id))
        return to_location_node(model)

    def get_hq(self) -> LocationNode | None:
        model = self.session.scalars(
            select(LocationModel).where(
                LocationModel.location_type == LocationType.HQ.value
            )
        ).first()
        return to_location_node(model) if model is not None else None
