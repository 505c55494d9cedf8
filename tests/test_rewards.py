"""
Tests for the reward ledger
"""
import threading
from unittest.mock import patch

import pytest

import sys
sys.path.insert(0, '.')

from src.core.exceptions import (
    AlreadyClaimedError,
    InsufficientFundsError,
    LedgerRejected,
    NotFoundError,
    ValidationError,
)
from src.ledger.base import Confirmation, ConfirmationStatus, RejectionKind


class TestRewardLedger:
    """Test suite for crediting rewards."""

    @pytest.fixture(autouse=True)
    def reported(self, system, yellowstone_report):
        self.system = system
        self.rewards = system.rewards
        system.registry.create_incident(reporter="alice", **yellowstone_report)

    def test_unknown_actor_has_zero_balance(self):
        assert self.rewards.balance_of("nobody") == 0

    def test_credit_once(self):
        credit = self.rewards.credit("alice", 1, 10)

        assert credit.amount == 10
        assert credit.credited_at is not None
        assert self.rewards.balance_of("alice") == 10
        assert self.rewards.is_claimed(1)
        assert self.system.registry.get_incident(1).reward_claimed is True

    def test_second_credit_rejected(self):
        self.rewards.credit("alice", 1, 10)

        with pytest.raises(AlreadyClaimedError):
            self.rewards.credit("alice", 1, 10)

        assert self.rewards.balance_of("alice") == 10

    def test_balances_accumulate_across_incidents(self, yellowstone_report):
        self.system.registry.create_incident(reporter="alice", **yellowstone_report)

        self.rewards.credit("alice", 1, 10)
        self.rewards.credit("alice", 2, 25)

        assert self.rewards.balance_of("alice") == 35

    def test_unknown_incident(self):
        with pytest.raises(NotFoundError):
            self.rewards.credit("alice", 7, 10)

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            self.rewards.credit("alice", 1, amount)

        assert not self.rewards.is_claimed(1)

    def test_conflict_maps_to_already_claimed(self):
        conflict = Confirmation(
            handle_id="h1",
            status=ConfirmationStatus.REJECTED,
            error_kind=RejectionKind.CONFLICT,
            detail="incidents/1.rewardClaimed is True, expected False",
        )

        with patch.object(self.system.ledger, "commit", return_value=conflict):
            with pytest.raises(AlreadyClaimedError):
                self.rewards.credit("alice", 1, 10)

    def test_other_rejections_propagate(self):
        unavailable = Confirmation(
            handle_id="h1",
            status=ConfirmationStatus.REJECTED,
            error_kind=RejectionKind.UNAVAILABLE,
        )

        with patch.object(self.system.ledger, "commit", return_value=unavailable):
            with pytest.raises(LedgerRejected):
                self.rewards.credit("alice", 1, 10)

        assert self.rewards.balance_of("alice") == 0


class TestConcurrentCredits:
    """Racing credits for one incident."""

    def test_only_one_credit_applies(self, memory_system, yellowstone_report):
        memory_system.registry.create_incident(reporter="alice", **yellowstone_report)
        barrier = threading.Barrier(8)
        results = []

        def credit():
            barrier.wait()
            try:
                memory_system.rewards.credit("alice", 1, 10)
                results.append("credited")
            except AlreadyClaimedError:
                results.append("claimed")

        threads = [threading.Thread(target=credit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("credited") == 1
        assert results.count("claimed") == 7
        assert memory_system.rewards.balance_of("alice") == 10


class TestTransfer:
    """Test suite for moving balance between actors."""

    @pytest.fixture(autouse=True)
    def funded(self, system, yellowstone_report):
        self.system = system
        self.rewards = system.rewards
        system.registry.create_incident(reporter="alice", **yellowstone_report)
        self.rewards.credit("alice", 1, 10)

    def test_transfer_moves_balance(self):
        transfer = self.rewards.transfer("alice", "bob", 4)

        assert transfer.to_dict()["amount"] == 4
        assert transfer.transferred_at is not None
        assert self.rewards.balance_of("alice") == 6
        assert self.rewards.balance_of("bob") == 4

    def test_whole_balance_can_move(self):
        self.rewards.transfer("alice", "bob", 10)

        assert self.rewards.balance_of("alice") == 0

    def test_insufficient_balance(self):
        with pytest.raises(InsufficientFundsError):
            self.rewards.transfer("alice", "bob", 11)

        assert self.rewards.balance_of("alice") == 10
        assert self.rewards.balance_of("bob") == 0

    def test_unknown_sender_has_nothing(self):
        with pytest.raises(InsufficientFundsError):
            self.rewards.transfer("carol", "bob", 1)

    def test_self_transfer_rejected(self):
        with pytest.raises(ValidationError):
            self.rewards.transfer("alice", "alice", 1)

    @pytest.mark.parametrize("amount", [0, -3, 2.5])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            self.rewards.transfer("alice", "bob", amount)

        assert self.rewards.balance_of("alice") == 10


class TestConcurrentTransfers:
    """Racing transfers from one balance."""

    def test_balance_never_overdrawn(self, memory_system, yellowstone_report):
        memory_system.registry.create_incident(reporter="alice", **yellowstone_report)
        memory_system.rewards.credit("alice", 1, 10)
        barrier = threading.Barrier(8)
        results = []

        def transfer(recipient):
            barrier.wait()
            try:
                memory_system.rewards.transfer("alice", recipient, 3)
                results.append("moved")
            except InsufficientFundsError:
                results.append("refused")

        threads = [threading.Thread(target=transfer, args=(f"r{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("moved") == 3
        assert memory_system.rewards.balance_of("alice") == 1
