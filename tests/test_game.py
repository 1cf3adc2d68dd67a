"""
Tests for basefeebet/protocol/game.py

Tests deposits, the oracle handshake and the claim/withdraw dispatcher,
including the end-to-end scenarios:
- guess collisions within and across groups
- refunds when the oracle never answers
- nearest-guess winner, tie split and claim-order asymmetry
- set-once signal
"""

import pytest
from unittest.mock import Mock

from basefeebet.blockchain.funds import InMemoryFunds
from basefeebet.config import GameConfig, UNIT
from basefeebet.errors import (
    AlreadySet,
    AlreadySettled,
    GuessOutOfRange,
    GuessTaken,
    InvalidGuess,
    InvalidRecord,
    InvalidTargetTime,
    InvalidWagerReference,
    NotBettingPhase,
    ResultPending,
    SignalExpired,
    TransferFailed,
    UnauthorizedCaller,
    ZeroBet,
)
from basefeebet.oracle.client import OracleClient
from basefeebet.oracle.header import encode_header
from basefeebet.protocol.events import (
    BetPlaced,
    Claimed,
    SignalReceived,
    SignalRequested,
    Withdrawn,
)
from basefeebet.protocol.game import BaseFeeGame
from basefeebet.protocol.ledger import WagerStatus


# ============================================================================
# TEST DATA
# ============================================================================

GAME_START = 1000
ORACLE = "oracle"
OPERATOR = "operator"
GWEI = 10 ** 9
FEE = UNIT // 1000

ROUND1_BET = GAME_START + 500           # inside round 1's betting window
ROUND1_REVEAL = GAME_START + 2000       # reveal time of round 1
ROUND1_DEADLINE = ROUND1_REVEAL + 256   # last step the oracle may answer

BETTORS = ("alice", "bob", "carol", "dave", "erin")
STARTING_BALANCE = 10_000 * UNIT


def create_test_config(**overrides) -> GameConfig:
    """Create a game config starting at GAME_START."""
    values = dict(
        game_start=GAME_START,
        oracle=ORACLE,
        operator=OPERATOR,
        oracle_fee=FEE,
    )
    values.update(overrides)
    return GameConfig(**values)


def create_test_game(config: GameConfig = None, rejecting=None, oracle_client=None):
    """
    Create a game with funded bettors and a fee reserve.

    Returns:
        (game, funds, oracle_client, events)
    """
    config = config or create_test_config()
    funds = InMemoryFunds(
        game_account=config.game_account,
        balances={name: STARTING_BALANCE for name in BETTORS},
        rejecting=rejecting,
    )
    funds.mint(config.game_account, UNIT)  # reserve for oracle fees
    client = oracle_client or Mock(spec=OracleClient)
    game = BaseFeeGame(config, funds, client)
    events = []
    game.subscribe(events.append)
    return game, funds, client, events


def submit_round_signal(game: BaseFeeGame, round_index: int, base_fee: int, now: int = None) -> int:
    """Submit a signal for round_index as the oracle."""
    target = game.timing.reveal_time(round_index)
    raw = encode_header(number=target, base_fee=base_fee)
    return game.submit_signal(ORACLE, target, raw, now if now is not None else target)


def events_of(events, event_type):
    return [e for e in events if isinstance(e, event_type)]


# ============================================================================
# DEPOSIT TESTS
# ============================================================================

class TestDeposit:
    """Tests for BaseFeeGame.deposit()."""

    def test_deposit_records_wager(self):
        game, funds, _, events = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)

        wager = game.get_wager("alice", index)
        assert (wager.round_index, wager.scale, wager.guess) == (1, 0, 300)
        assert wager.amount == 300 * UNIT
        assert wager.status is WagerStatus.PENDING
        assert game.get_group(1, 0).pool == 300 * UNIT
        assert funds.get_balance("alice") == STARTING_BALANCE - 300 * UNIT

        placed = events_of(events, BetPlaced)
        assert len(placed) == 1
        assert placed[0].guess == 300
        assert placed[0].to_dict()["event"] == "BetPlaced"

    @pytest.mark.parametrize("amount", [0, -5])
    def test_zero_bet(self, amount):
        game, _, _, _ = create_test_game()
        with pytest.raises(ZeroBet):
            game.deposit("alice", amount, ROUND1_BET)

    def test_before_game_start(self):
        game, _, _, _ = create_test_game()
        with pytest.raises(NotBettingPhase):
            game.deposit("alice", 300 * UNIT, GAME_START - 1)

    def test_outside_betting_window(self):
        config = create_test_config(betting_window=500)
        game, _, _, _ = create_test_game(config)
        game.deposit("alice", 300 * UNIT, GAME_START + 499)
        with pytest.raises(NotBettingPhase):
            game.deposit("bob", 400 * UNIT, GAME_START + 500)

    @pytest.mark.parametrize("amount", [1000 * UNIT, 999])
    def test_invalid_guess(self, amount):
        game, funds, _, _ = create_test_game()
        with pytest.raises(InvalidGuess):
            game.deposit("alice", amount, ROUND1_BET)
        assert funds.get_balance("alice") == STARTING_BALANCE
        assert game.get_wagers("alice") == []

    def test_guess_out_of_configured_range(self):
        game, _, _, _ = create_test_game(create_test_config(guess_min=200))
        with pytest.raises(GuessOutOfRange):
            game.deposit("alice", 150 * UNIT, ROUND1_BET)

    def test_insufficient_funds_leaves_no_state(self):
        game, _, _, _ = create_test_game()
        with pytest.raises(TransferFailed):
            game.deposit("mallory", 300 * UNIT, ROUND1_BET)
        assert game.get_round(1) is None

    def test_guess_collision_and_separate_groups(self):
        """Same guess collides within a group but not across groups."""
        game, funds, _, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)

        with pytest.raises(GuessTaken):
            game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        with pytest.raises(GuessTaken):
            game.deposit("bob", 300 * UNIT + UNIT // 2, ROUND1_BET + 1)
        assert funds.get_balance("bob") == STARTING_BALANCE

        index = game.deposit("bob", 30 * UNIT, ROUND1_BET + 2)
        wager = game.get_wager("bob", index)
        assert (wager.guess, wager.scale) == (300, 1)

    def test_same_guess_next_round(self):
        game, _, _, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        index = game.deposit("bob", 300 * UNIT, ROUND1_BET + 1000)
        assert game.get_wager("bob", index).round_index == 2


# ============================================================================
# ORACLE REQUEST TESTS
# ============================================================================

class TestSignalRequest:
    """Tests for oracle requests triggered by deposits."""

    def test_deposit_after_reveal_requests_signal(self):
        game, funds, client, events = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)

        # Round 3 opens exactly at round 1's reveal time
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)

        client.request_signal.assert_called_once_with(ROUND1_REVEAL, FEE)
        assert funds.get_balance(ORACLE) == FEE
        assert game.get_round(1).signal_requested_at == ROUND1_REVEAL + 10
        requested = events_of(events, SignalRequested)
        assert [(e.round_index, e.target_time_index) for e in requested] == [(1, ROUND1_REVEAL)]

    def test_requested_once(self):
        game, _, client, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)
        game.deposit("carol", 400 * UNIT, ROUND1_REVEAL + 11)
        assert client.request_signal.call_count == 1

    def test_no_request_before_reveal(self):
        game, _, client, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL - 1)
        client.request_signal.assert_not_called()

    def test_no_request_when_pool_below_fee(self):
        game, _, client, _ = create_test_game(create_test_config(oracle_fee=500 * UNIT))
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)
        client.request_signal.assert_not_called()

    def test_no_request_for_empty_round(self):
        game, _, client, _ = create_test_game()
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)
        client.request_signal.assert_not_called()
        assert game.get_round(1) is None

    def test_no_request_after_response_window(self):
        game, _, client, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_DEADLINE + 1)
        client.request_signal.assert_not_called()

    def test_explicit_request(self):
        game, _, client, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        assert not game.request_signal(1, ROUND1_REVEAL - 1)
        assert game.request_signal(1, ROUND1_REVEAL)
        assert not game.request_signal(1, ROUND1_REVEAL + 1)
        assert client.request_signal.call_count == 1

    def test_fee_payment_failure_is_not_fatal(self):
        game, funds, client, _ = create_test_game(rejecting={ORACLE})
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        index = game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)

        assert game.get_wager("bob", index).guess == 300
        client.request_signal.assert_not_called()
        assert game.get_round(1).signal_requested_at is None

    def test_request_failure_is_not_fatal(self):
        client = Mock(spec=OracleClient)
        client.request_signal.side_effect = RuntimeError("relay saturated")
        game, funds, _, _ = create_test_game(oracle_client=client)
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)
        assert game.get_round(1).signal_requested_at is None
        assert game.get_round(1).fee_paid
        assert funds.get_balance(ORACLE) == FEE

    def test_retry_after_failed_request_pays_fee_once(self):
        client = Mock(spec=OracleClient)
        client.request_signal.side_effect = [RuntimeError("relay saturated"), None]
        game, funds, _, events = create_test_game(oracle_client=client)
        game.deposit("alice", 300 * UNIT, ROUND1_BET)

        game.deposit("bob", 300 * UNIT, ROUND1_REVEAL + 10)
        game.deposit("carol", 400 * UNIT, ROUND1_REVEAL + 11)
        game.deposit("dave", 500 * UNIT, ROUND1_REVEAL + 12)

        assert client.request_signal.call_count == 2
        assert game.get_round(1).signal_requested_at == ROUND1_REVEAL + 11
        assert len(events_of(events, SignalRequested)) == 1
        assert funds.get_balance(ORACLE) == FEE

    def test_fee_must_be_covered_by_one_group(self):
        """Two groups that only cover the fee together do not trigger a request."""
        game, _, client, _ = create_test_game(create_test_config(oracle_fee=350 * UNIT))
        game.deposit("alice", 300 * UNIT, ROUND1_BET)    # scale 0
        game.deposit("bob", 90 * UNIT, ROUND1_BET + 1)   # scale 1
        assert not game.request_signal(1, ROUND1_REVEAL)
        client.request_signal.assert_not_called()

        game.deposit("carol", 60 * UNIT, ROUND1_BET + 2)  # scale 1 pool now 150
        assert not game.request_signal(1, ROUND1_REVEAL)

    def test_fee_covered_by_largest_group(self):
        game, _, client, _ = create_test_game(create_test_config(oracle_fee=350 * UNIT))
        game.deposit("alice", 90 * UNIT, ROUND1_BET)     # scale 1
        game.deposit("bob", 400 * UNIT, ROUND1_BET + 1)  # scale 0
        assert game.request_signal(1, ROUND1_REVEAL)
        client.request_signal.assert_called_once_with(ROUND1_REVEAL, 350 * UNIT)

    def test_no_oracle_client(self):
        config = create_test_config()
        game = BaseFeeGame(config, InMemoryFunds(balances={"alice": STARTING_BALANCE}))
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        assert not game.request_signal(1, ROUND1_REVEAL)


# ============================================================================
# ORACLE RESPONSE TESTS
# ============================================================================

class TestSubmitSignal:
    """Tests for BaseFeeGame.submit_signal()."""

    def test_stores_signal(self):
        game, _, _, events = create_test_game()
        assert submit_round_signal(game, 1, 30 * GWEI) == 30 * GWEI
        assert game.get_round(1).signal == 30 * GWEI
        received = events_of(events, SignalReceived)
        assert [(e.round_index, e.signal) for e in received] == [(1, 30 * GWEI)]

    def test_unauthorized_caller(self):
        game, _, _, _ = create_test_game()
        raw = encode_header(number=ROUND1_REVEAL, base_fee=30 * GWEI)
        with pytest.raises(UnauthorizedCaller):
            game.submit_signal("mallory", ROUND1_REVEAL, raw, ROUND1_REVEAL)
        assert game.get_round(1) is None

    def test_already_set(self):
        """A second signal is rejected and the stored value is unchanged."""
        game, _, _, _ = create_test_game()
        submit_round_signal(game, 1, 30 * GWEI)
        with pytest.raises(AlreadySet):
            submit_round_signal(game, 1, 45 * GWEI, now=ROUND1_REVEAL + 5)
        assert game.get_round(1).signal == 30 * GWEI

    @pytest.mark.parametrize("target", [GAME_START + 1999, GAME_START, ROUND1_REVEAL + 1])
    def test_invalid_target(self, target):
        game, _, _, _ = create_test_game()
        raw = encode_header(number=target, base_fee=30 * GWEI)
        with pytest.raises(InvalidTargetTime):
            game.submit_signal(ORACLE, target, raw, ROUND1_REVEAL + 10)

    def test_target_in_future(self):
        game, _, _, _ = create_test_game()
        raw = encode_header(number=ROUND1_REVEAL, base_fee=30 * GWEI)
        with pytest.raises(InvalidTargetTime):
            game.submit_signal(ORACLE, ROUND1_REVEAL, raw, ROUND1_REVEAL - 1)

    def test_expired(self):
        game, _, _, _ = create_test_game()
        with pytest.raises(SignalExpired):
            submit_round_signal(game, 1, 30 * GWEI, now=ROUND1_DEADLINE + 1)
        submit_round_signal(game, 1, 30 * GWEI, now=ROUND1_DEADLINE)

    def test_record_for_wrong_block(self):
        game, _, _, _ = create_test_game()
        raw = encode_header(number=ROUND1_REVEAL + 1, base_fee=30 * GWEI)
        with pytest.raises(InvalidRecord):
            game.submit_signal(ORACLE, ROUND1_REVEAL, raw, ROUND1_REVEAL)

    def test_garbage_record(self):
        game, _, _, _ = create_test_game()
        with pytest.raises(InvalidRecord):
            game.submit_signal(ORACLE, ROUND1_REVEAL, b"\xff\x00", ROUND1_REVEAL)
        assert game.get_round(1) is None


# ============================================================================
# CLAIM TESTS
# ============================================================================

class TestClaimPending:
    """Tests for claims before the signal is known."""

    def test_invalid_reference(self):
        game, _, _, _ = create_test_game()
        with pytest.raises(InvalidWagerReference):
            game.claim("alice", 0, ROUND1_REVEAL)

    def test_result_pending_within_window(self):
        game, _, _, _ = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        for now in (ROUND1_BET + 1, ROUND1_REVEAL, ROUND1_DEADLINE):
            with pytest.raises(ResultPending):
                game.claim("alice", index, now)
        assert game.get_wager("alice", index).status is WagerStatus.PENDING

    def test_refund_after_oracle_window(self):
        """Without a signal, every bettor gets the original amount back."""
        game, funds, _, events = create_test_game()
        a = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        b = game.deposit("bob", 305 * UNIT + 7, ROUND1_BET + 1)

        result = game.claim("bob", b, ROUND1_DEADLINE + 1)
        assert result.status is WagerStatus.WITHDRAWN
        assert result.payout == 305 * UNIT + 7
        assert funds.get_balance("bob") == STARTING_BALANCE

        game.claim("alice", a, ROUND1_DEADLINE + 100)
        assert funds.get_balance("alice") == STARTING_BALANCE
        assert game.get_group(1, 0).pool == 0

        withdrawn = events_of(events, Withdrawn)
        assert [e.bettor for e in withdrawn] == ["bob", "alice"]

        with pytest.raises(AlreadySettled):
            game.claim("alice", a, ROUND1_DEADLINE + 200)

    def test_late_signal_rejected_after_refunds(self):
        game, _, _, _ = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        game.claim("alice", index, ROUND1_DEADLINE + 1)
        with pytest.raises(SignalExpired):
            submit_round_signal(game, 1, 30 * GWEI, now=ROUND1_DEADLINE + 2)


class TestClaimSettled:
    """Tests for claims once the signal is known."""

    def test_nearest_guess_wins(self):
        """Signal 29.5 gwei -> 295; group {250, 300} -> 300 wins."""
        game, funds, _, events = create_test_game()
        loser = game.deposit("alice", 250 * UNIT, ROUND1_BET)
        winner = game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        pool = 550 * UNIT
        submit_round_signal(game, 1, 29_500_000_000)

        result = game.claim("bob", winner, ROUND1_REVEAL + 1)
        assert result.winner
        assert result.status is WagerStatus.CLAIMED
        assert result.payout == pool * 99 // 100
        assert funds.get_balance("bob") == STARTING_BALANCE - 300 * UNIT + pool * 99 // 100
        assert funds.get_balance(OPERATOR) == pool // 100

        result = game.claim("alice", loser, ROUND1_REVEAL + 2)
        assert not result.winner
        assert result.payout == 0
        assert game.get_wager("alice", loser).status is WagerStatus.CLAIMED
        assert funds.get_balance("alice") == STARTING_BALANCE - 250 * UNIT

        claimed = events_of(events, Claimed)
        assert [(e.bettor, e.amount) for e in claimed] == [("bob", pool * 99 // 100), ("alice", 0)]

    def test_loser_first_does_not_take_commission(self):
        game, funds, _, _ = create_test_game()
        loser = game.deposit("alice", 250 * UNIT, ROUND1_BET)
        game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        submit_round_signal(game, 1, 30 * GWEI)

        game.claim("alice", loser, ROUND1_REVEAL + 1)
        group = game.get_group(1, 0)
        assert group.winners_computed
        assert not group.commission_taken
        assert funds.get_balance(OPERATOR) == 0

    @pytest.mark.parametrize("first,second", [("alice", "bob"), ("bob", "alice")])
    def test_tie_first_claimant_gets_odd_unit(self, first, second):
        """Signal 30 gwei -> 300; group {295, 305} is an exact tie."""
        game, funds, _, _ = create_test_game()
        indices = {
            "alice": game.deposit("alice", 295 * UNIT + 1, ROUND1_BET),
            "bob": game.deposit("bob", 305 * UNIT, ROUND1_BET + 1),
        }
        pool = 600 * UNIT + 1
        submit_round_signal(game, 1, 30 * GWEI)

        first_result = game.claim(first, indices[first], ROUND1_REVEAL + 1)
        second_result = game.claim(second, indices[second], ROUND1_REVEAL + 2)

        commission = pool // 100
        pot = pool - commission
        assert pot % 2 == 1
        assert first_result.winner and second_result.winner
        assert first_result.payout == (pot + 1) // 2
        assert second_result.payout == pot // 2
        assert first_result.payout + second_result.payout + funds.get_balance(OPERATOR) == pool

    def test_exact_hit(self):
        game, _, _, _ = create_test_game()
        game.deposit("alice", 299 * UNIT, ROUND1_BET)
        index = game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        game.deposit("carol", 301 * UNIT, ROUND1_BET + 2)
        submit_round_signal(game, 1, 30 * GWEI)
        assert game.claim("bob", index, ROUND1_REVEAL).payout == 900 * UNIT * 99 // 100

    def test_sole_bettor_wins_own_pool(self):
        game, funds, _, _ = create_test_game()
        index = game.deposit("alice", 800 * UNIT, ROUND1_BET)
        submit_round_signal(game, 1, 12 * GWEI)
        result = game.claim("alice", index, ROUND1_REVEAL)
        assert result.payout == 792 * UNIT
        assert funds.get_balance("alice") == STARTING_BALANCE - 8 * UNIT

    def test_unmappable_signal_refunds_everyone(self):
        game, funds, _, events = create_test_game()
        a = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        b = game.deposit("bob", 400 * UNIT, ROUND1_BET + 1)
        submit_round_signal(game, 1, 50)

        assert game.claim("alice", a, ROUND1_REVEAL).status is WagerStatus.WITHDRAWN
        assert game.claim("bob", b, ROUND1_REVEAL).status is WagerStatus.WITHDRAWN
        assert funds.get_balance("alice") == STARTING_BALANCE
        assert funds.get_balance("bob") == STARTING_BALANCE
        assert funds.get_balance(OPERATOR) == 0
        assert len(events_of(events, Withdrawn)) == 2

    def test_groups_settle_independently(self):
        game, _, _, _ = create_test_game()
        big = game.deposit("alice", 300 * UNIT, ROUND1_BET)       # scale 0
        small = game.deposit("bob", 29 * UNIT, ROUND1_BET + 1)    # 290, scale 1
        game.deposit("carol", 35 * UNIT, ROUND1_BET + 2)          # 350, scale 1
        submit_round_signal(game, 1, 31 * GWEI)                   # target 310

        assert game.claim("alice", big, ROUND1_REVEAL).payout == 297 * UNIT
        assert game.claim("bob", small, ROUND1_REVEAL).payout == 64 * UNIT * 99 // 100
        assert game.get_group(1, 0).winners == (300,)
        assert game.get_group(1, 1).winners == (290,)

    def test_double_claim_rejected(self):
        game, funds, _, _ = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        submit_round_signal(game, 1, 30 * GWEI)
        game.claim("alice", index, ROUND1_REVEAL)
        balance = funds.get_balance("alice")

        with pytest.raises(AlreadySettled):
            game.claim("alice", index, ROUND1_REVEAL + 1)
        assert funds.get_balance("alice") == balance

    def test_winners_computed_once(self):
        game, _, _, _ = create_test_game()
        indices = [
            game.deposit(name, amount * UNIT, ROUND1_BET + i)
            for i, (name, amount) in enumerate([("alice", 200), ("bob", 295), ("carol", 305), ("dave", 700)])
        ]
        submit_round_signal(game, 1, 30 * GWEI)

        game.claim("alice", indices[0], ROUND1_REVEAL)
        group = game.get_group(1, 0)
        snapshot = (group.winners, group.share, group.commission, group.tie_remainder)

        for name, index in zip(("bob", "carol", "dave"), indices[1:]):
            game.claim(name, index, ROUND1_REVEAL + 1)
            assert (group.winners, group.share, group.commission, group.tie_remainder) == snapshot

    def test_payouts_never_exceed_pool(self):
        game, funds, _, _ = create_test_game()
        amounts = [150 * UNIT + 3, 280 * UNIT + 11, 320 * UNIT, 420 * UNIT + 5, 999 * UNIT]
        indices = [
            game.deposit(name, amount, ROUND1_BET + i)
            for i, (name, amount) in enumerate(zip(BETTORS, amounts))
        ]
        pool = sum(amounts)
        submit_round_signal(game, 1, 30 * GWEI)

        paid = sum(
            game.claim(name, index, ROUND1_REVEAL).payout
            for name, index in zip(BETTORS, indices)
        )
        commission = funds.get_balance(OPERATOR)
        assert commission == pool // 100
        assert paid + commission == pool
        assert game.get_group(1, 0).pool == 0


# ============================================================================
# TRANSFER FAILURE TESTS
# ============================================================================

class TestTransferFailures:
    """Tests for atomicity of payouts and best-effort commission."""

    def test_payout_failure_rolls_back(self):
        game, funds, _, events = create_test_game(rejecting={"bob"})
        game.deposit("alice", 250 * UNIT, ROUND1_BET)
        index = game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        submit_round_signal(game, 1, 30 * GWEI)
        group = game.get_group(1, 0)

        with pytest.raises(TransferFailed):
            game.claim("bob", index, ROUND1_REVEAL)

        wager = game.get_wager("bob", index)
        assert wager.status is WagerStatus.PENDING
        assert wager.payout == 0
        assert group.pool == 550 * UNIT
        assert group.amounts[300] == 300 * UNIT
        assert not group.winners_computed
        assert not group.commission_taken
        assert funds.get_balance(OPERATOR) == 0
        assert events_of(events, Claimed) == []

        funds.rejecting.clear()
        result = game.claim("bob", index, ROUND1_REVEAL + 1)
        assert result.payout == 550 * UNIT * 99 // 100
        assert funds.get_balance(OPERATOR) == 550 * UNIT // 100

    def test_reentrant_claim_rolls_back(self):
        """A recipient that claims again from inside its payout gets nothing twice."""
        game, funds, _, events = create_test_game()
        game.deposit("alice", 250 * UNIT, ROUND1_BET)
        index = game.deposit("bob", 300 * UNIT, ROUND1_BET + 1)
        submit_round_signal(game, 1, 30 * GWEI)

        send = funds.send

        def reentrant_send(recipient, amount):
            if recipient == "bob":
                game.claim("bob", index, ROUND1_REVEAL)
            send(recipient, amount)

        funds.send = reentrant_send
        with pytest.raises(AlreadySettled):
            game.claim("bob", index, ROUND1_REVEAL)

        group = game.get_group(1, 0)
        assert game.get_wager("bob", index).status is WagerStatus.PENDING
        assert group.pool == 550 * UNIT
        assert not group.commission_taken
        assert funds.get_balance("bob") == STARTING_BALANCE - 300 * UNIT
        assert events_of(events, Claimed) == []

        funds.send = send
        assert game.claim("bob", index, ROUND1_REVEAL).payout == 550 * UNIT * 99 // 100

    def test_backend_error_rolls_back_refund(self):
        game, funds, _, _ = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        funds.send = Mock(side_effect=ConnectionError("node unreachable"))

        with pytest.raises(ConnectionError):
            game.claim("alice", index, ROUND1_DEADLINE + 1)
        assert game.get_wager("alice", index).status is WagerStatus.PENDING
        assert game.get_group(1, 0).pool == 300 * UNIT
        assert game.get_group(1, 0).amounts[300] == 300 * UNIT

    def test_refund_failure_rolls_back(self):
        game, funds, _, _ = create_test_game(rejecting={"alice"})
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)

        with pytest.raises(TransferFailed):
            game.claim("alice", index, ROUND1_DEADLINE + 1)
        assert game.get_wager("alice", index).status is WagerStatus.PENDING
        assert game.get_group(1, 0).pool == 300 * UNIT

        funds.rejecting.clear()
        assert game.claim("alice", index, ROUND1_DEADLINE + 2).payout == 300 * UNIT

    def test_commission_failure_does_not_block_payout(self):
        game, funds, _, _ = create_test_game(rejecting={OPERATOR})
        a = game.deposit("alice", 295 * UNIT, ROUND1_BET)
        b = game.deposit("bob", 305 * UNIT, ROUND1_BET + 1)
        submit_round_signal(game, 1, 30 * GWEI)

        first = game.claim("alice", a, ROUND1_REVEAL)
        second = game.claim("bob", b, ROUND1_REVEAL)

        pot = 600 * UNIT - 6 * UNIT
        assert first.payout + second.payout == pot
        assert funds.get_balance(OPERATOR) == 0
        group = game.get_group(1, 0)
        assert group.commission_taken
        assert group.pool == 0


# ============================================================================
# QUERY TESTS
# ============================================================================

class TestQueries:
    """Tests for query helpers."""

    def test_current_round(self):
        game, _, _, _ = create_test_game()
        assert game.current_round(GAME_START - 1) is None
        assert game.current_round(ROUND1_REVEAL) == 3

    def test_get_group_missing(self):
        game, _, _, _ = create_test_game()
        assert game.get_group(1, 0) is None

    def test_claim_result_to_dict(self):
        game, _, _, _ = create_test_game()
        index = game.deposit("alice", 300 * UNIT, ROUND1_BET)
        submit_round_signal(game, 1, 30 * GWEI)
        data = game.claim("alice", index, ROUND1_REVEAL).to_dict()
        assert data["status"] == "claimed"
        assert data["winner"] is True

    def test_stats(self):
        game, _, _, _ = create_test_game()
        game.deposit("alice", 300 * UNIT, ROUND1_BET)
        stats = game.get_stats()
        assert stats["rounds"] == 1
        assert stats["bettors"] == 1
        assert stats["game_balance"] == UNIT + 300 * UNIT
