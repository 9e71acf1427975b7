"""
Tests for LocationService.

These tests verify:
- Locations are created under the HQ -> Branch -> SubBranch rules
- Deactivation is refused while active children remain
- Reparenting and sibling reordering persist
"""

from uuid import uuid4

import pytest

from distribution_kernel.config.schema import PricingSettings
from distribution_kernel.domain.hierarchy import LocationType, Role
from distribution_kernel.exceptions import (
    InvalidCurrencyError,
    InvalidHierarchyError,
    LocationNotFoundError,
)
from distribution_kernel.services.location_service import LocationService


class TestCreateLocation:

    def test_hq_defaults_to_configured_currency(self, session, test_actor_id):
        service = LocationService(session, pricing_settings=PricingSettings(hq_currency="JPY"))
        hq = service.create_location("Tokyo HQ", "HQ", test_actor_id)
        assert hq.currency == "JPY"
        assert hq.parent_id is None
        assert hq.is_active

    def test_seeded_network_shape(self, location_service, network):
        arena = location_service.hierarchy()
        assert len(arena) == 5
        assert [n.id for n in arena.ancestors(network.vn_sub.id)] == [
            network.hq.id, network.vn_branch.id
        ]

    def test_display_order_defaults_to_end_of_siblings(self, network):
        assert network.vn_branch.display_order == 0
        assert network.cn_branch.display_order == 1
        assert network.kr_branch.display_order == 2

    def test_second_hq_is_rejected(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError):
            location_service.create_location("Other HQ", LocationType.HQ, test_actor_id)

    def test_branch_needs_currency(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError, match="currency"):
            location_service.create_location(
                "Manila Branch", LocationType.BRANCH, test_actor_id, parent_id=network.hq.id
            )

    def test_unknown_currency_is_rejected(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            location_service.create_location(
                "Nowhere", LocationType.BRANCH, test_actor_id,
                parent_id=network.hq.id, currency="ZZZ",
            )

    def test_currency_is_normalised(self, location_service, network, test_actor_id):
        node = location_service.create_location(
            "Bangkok Branch", LocationType.BRANCH, test_actor_id,
            parent_id=network.hq.id, currency="thb",
        )
        assert node.currency == "THB"

    def test_sub_branch_under_hq_is_rejected(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError):
            location_service.create_location(
                "Stray", LocationType.SUB_BRANCH, test_actor_id,
                parent_id=network.hq.id, currency="KRW",
            )

    def test_unknown_parent(self, location_service, network, test_actor_id):
        with pytest.raises(LocationNotFoundError):
            location_service.create_location(
                "Ghost", LocationType.BRANCH, test_actor_id,
                parent_id=uuid4(), currency="KRW",
            )

    def test_blank_name_is_rejected(self, location_service, test_actor_id):
        with pytest.raises(InvalidHierarchyError):
            location_service.create_location("  ", LocationType.HQ, test_actor_id)

    def test_creation_is_logged(self, location_service, test_actor_id, captured_logs):
        hq = location_service.create_location("Seoul HQ", LocationType.HQ, test_actor_id)
        records = [r for r in captured_logs() if r["message"] == "location_created"]
        assert records[0]["location_id"] == str(hq.id)
        assert records[0]["location_type"] == "HQ"


class TestDeactivate:

    def test_refused_while_children_active(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError, match="active child"):
            location_service.deactivate_location(network.vn_branch.id, test_actor_id)

    def test_leaf_first_then_parent(self, location_service, network, test_actor_id):
        sub = location_service.deactivate_location(network.vn_sub.id, test_actor_id)
        assert not sub.is_active
        branch = location_service.deactivate_location(network.vn_branch.id, test_actor_id)
        assert not branch.is_active

    def test_inactive_locations_drop_out_of_admin_scope(
        self, location_service, network, test_actor_id
    ):
        location_service.deactivate_location(network.vn_sub.id, test_actor_id)
        scope = location_service.hierarchy().accessible_locations(Role.HQ_ADMIN, None)
        assert network.vn_sub.id not in {n.id for n in scope}
        assert len(scope) == 4


class TestReparent:

    def test_sub_branch_moves_to_another_branch(self, location_service, network, test_actor_id):
        moved = location_service.reparent_location(
            network.vn_sub.id, network.kr_branch.id, test_actor_id
        )
        assert moved.parent_id == network.kr_branch.id
        children = location_service.hierarchy().direct_children(network.kr_branch.id)
        assert [c.id for c in children] == [network.vn_sub.id]

    def test_branch_cannot_move_under_its_sub_branch(
        self, location_service, network, test_actor_id
    ):
        with pytest.raises(InvalidHierarchyError):
            location_service.reparent_location(
                network.vn_branch.id, network.vn_sub.id, test_actor_id
            )

    def test_hq_cannot_move(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError):
            location_service.reparent_location(
                network.hq.id, network.kr_branch.id, test_actor_id
            )


class TestReorder:

    def test_reorder_rewrites_display_order(self, location_service, network, test_actor_id):
        order = [network.kr_branch.id, network.cn_branch.id, network.vn_branch.id]
        children = location_service.reorder_children(network.hq.id, order, test_actor_id)
        assert [c.id for c in children] == order
        assert [c.display_order for c in children] == [0, 1, 2]

    def test_ids_must_match_current_children(self, location_service, network, test_actor_id):
        with pytest.raises(InvalidHierarchyError):
            location_service.reorder_children(
                network.hq.id, [network.kr_branch.id, network.cn_branch.id], test_actor_id
            )
        with pytest.raises(InvalidHierarchyError):
            location_service.reorder_children(
                network.hq.id,
                [network.kr_branch.id, network.kr_branch.id, network.cn_branch.id],
                test_actor_id,
            )
