#!filepath: tests/test_interest_engine.py
import pytest

from worldtick.config.economy_config import InterestConfig
from worldtick.domain.models import Loan, Participant
from worldtick.engines.interest_engine import InterestProcessor, interest_for_interval
from worldtick.steps.batch_steps import drain_batches
from worldtick.utils.clock import MINUTE_MS

from factories import get, insert


def _loan(store, player_id, balance, rate, last_applied, status="active"):
    return insert(
        store,
        Loan(
            participant_id=player_id,
            principal=balance,
            remaining_balance=balance,
            interest_rate=rate,
            last_interest_applied=last_applied,
            status=status,
        ),
    )


def test_interest_formula():
    assert interest_for_interval(100_000, 5, 72) == 69
    assert interest_for_interval(100, 5, 72) == 0
    assert interest_for_interval(0, 5, 72) == 0
    assert interest_for_interval(1_000_000, 0.1, 72) == 13


def test_due_loan_accrues_and_debits_borrower(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=50))
    loan_id = _loan(store, player_id, 100_000, 5, now - 21 * MINUTE_MS)

    result = InterestProcessor(store, InterestConfig()).accrue_batch(40, None, now)

    assert result.processed == 1
    loan = get(store, Loan.table, loan_id)
    assert loan["remaining_balance"] == 100_069
    assert loan["accrued_interest"] == 69
    assert loan["last_interest_applied"] == now
    # 允许为负
    assert get(store, Participant.table, player_id)["balance"] == 50 - 69


def test_not_due_loan_untouched(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    stamp = now - 19 * MINUTE_MS
    loan_id = _loan(store, player_id, 100_000, 5, stamp)

    result = InterestProcessor(store, InterestConfig()).accrue_batch(40, None, now)

    assert result.processed == 0
    loan = get(store, Loan.table, loan_id)
    assert loan["remaining_balance"] == 100_000
    assert loan["last_interest_applied"] == stamp


def test_closed_loans_ignored(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    loan_id = _loan(store, player_id, 100_000, 5, now - 60 * MINUTE_MS, status="closed")

    assert InterestProcessor(store, InterestConfig()).accrue_batch(40, None, now).processed == 0
    assert get(store, Loan.table, loan_id)["remaining_balance"] == 100_000


def test_second_pass_in_same_window_is_idempotent(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    loan_id = _loan(store, player_id, 100_000, 5, now - 21 * MINUTE_MS)
    processor = InterestProcessor(store, InterestConfig())

    processor.accrue_batch(40, None, now)
    processor.accrue_batch(40, None, now + 5 * MINUTE_MS)
    assert get(store, Loan.table, loan_id)["remaining_balance"] == 100_069

    processor.accrue_batch(40, None, now + 20 * MINUTE_MS)
    assert get(store, Loan.table, loan_id)["remaining_balance"] == 100_069 + 69


def test_batches_follow_cursor(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    ids = [_loan(store, player_id, 100_000, 5, now - (100 - i) * MINUTE_MS) for i in range(7)]
    processor = InterestProcessor(store, InterestConfig())

    processed, batches = drain_batches(lambda limit, cursor: processor.accrue_batch(limit, cursor, now), 3, 5)

    assert processed == 7
    assert batches == 3
    assert all(get(store, Loan.table, i)["remaining_balance"] == 100_069 for i in ids)


@pytest.mark.parametrize("balance,rate", [(1, 1), (72_000, 1), (123_457, 7.25), (99_999_999, 12)])
def test_monotonic(store, clock, balance, rate):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    loan_id = _loan(store, player_id, balance, rate, now - 20 * MINUTE_MS)

    InterestProcessor(store, InterestConfig()).accrue_batch(40, None, now)

    after = get(store, Loan.table, loan_id)["remaining_balance"]
    assert after == balance + interest_for_interval(balance, rate, 72)
    assert after >= balance


def test_bad_borrower_balance_leaves_loan_balance_alone(store, clock):
    now = clock.now_ms()
    with store.transaction() as tx:
        player_id = tx.insert(Participant.table, {"name": "corrupt", "balance": "lots"})
    loan_id = _loan(store, player_id, 100_000, 5, now - 21 * MINUTE_MS)

    result = InterestProcessor(store, InterestConfig()).accrue_batch(40, None, now)

    assert result.processed == 0
    loan = get(store, Loan.table, loan_id)
    assert loan["remaining_balance"] == 100_000
    assert loan["accrued_interest"] == 0
    # 仍打戳，不会卡在轮转队首
    assert loan["last_interest_applied"] == now
    assert get(store, Participant.table, player_id)["balance"] == "lots"
