import asyncio
import random

import pytest

from api.detectors import NOTICES, InstantDetectorBank
from api.models import DetectionKind, ModerationAction


@pytest.fixture
def bank():
    return InstantDetectorBank(sweep_probability=0.0)


def test_clean_message_passes(bank, make_message):
    assert bank.check(make_message("how do I get the gamer role?")) is None


def test_pii_deleted_with_notice(bank, make_message):
    result = bank.check(make_message("call me at 555-123-4567"))

    assert result.classification == DetectionKind.PII
    assert result.action == ModerationAction.DELETE
    assert result.notice == NOTICES[DetectionKind.PII]


def test_pii_takes_priority_over_phishing(bank, make_message):
    result = bank.check(make_message("free nitro at dlscord.gift, email me@example.com"))

    assert result.classification == DetectionKind.PII


def test_phishing_and_zalgo_deleted(bank, make_message):
    phishing = bank.check(make_message("claim your nitro at discord-gift.ru", user_id="a"))
    zalgo = bank.check(make_message("h\u0301\u0302\u0303\u0304i", user_id="b"))

    assert phishing.classification == DetectionKind.PHISHING
    assert phishing.action == ModerationAction.DELETE
    assert zalgo.classification == DetectionKind.ZALGO


def test_sixth_message_in_window_is_spam(bank, make_message):
    results = [bank.check(make_message(f"message number {i}", offset=i)) for i in range(6)]

    assert results[:5] == [None] * 5
    assert results[5].classification == DetectionKind.SPAM
    assert results[5].action == ModerationAction.TIMEOUT


def test_third_distinct_user_with_same_text_is_raid(bank, make_message):
    results = [
        bank.check(make_message("JOIN MY SERVER NOW", user_id=f"user-{i}", offset=i))
        for i in range(3)
    ]

    assert results[0] is None
    assert results[1] is None
    assert results[2].classification == DetectionKind.RAID
    assert results[2].action == ModerationAction.TIMEOUT


def test_raid_fingerprint_ignores_case_and_punctuation(bank, make_message):
    bank.check(make_message("join my server now", user_id="a"))
    bank.check(make_message("JOIN my server, now!", user_id="b"))

    result = bank.check(make_message("Join My Server Now!!!", user_id="c"))

    assert result.classification == DetectionKind.RAID


def test_emoji_only_messages_never_form_a_raid(bank, make_message):
    results = [bank.check(make_message("🎉🎉🎉", user_id=f"user-{i}")) for i in range(5)]

    assert results == [None] * 5
    assert len(bank.raid) == 0


def test_min_fingerprint_length_skips_short_texts(make_message):
    bank = InstantDetectorBank(raid_min_fingerprint_length=4, sweep_probability=0.0)

    results = [bank.check(make_message("gg", user_id=f"user-{i}")) for i in range(3)]

    assert results == [None, None, None]


def test_probabilistic_sweep_runs_on_check(make_message):
    bank = InstantDetectorBank(sweep_probability=1.0, clock=lambda: 0.0, rng=random.Random(1))
    bank.spam.record("t-old", "u-old", -100.0)

    bank.check(make_message("hello"))

    assert bank.spam.window_for("t-old", "u-old") == []


def test_sweep_uses_clock(make_message):
    now = {"value": 0.0}
    bank = InstantDetectorBank(sweep_probability=0.0, clock=lambda: now["value"])
    message = make_message("hello")
    bank.check(message)

    now["value"] = message.received_ts + 60
    assert bank.sweep() == 2
    assert len(bank.spam) == 0
    assert len(bank.raid) == 0


@pytest.mark.asyncio
async def test_sweeper_stops_on_cancel():
    bank = InstantDetectorBank(sweep_probability=0.0)
    task = asyncio.create_task(bank.run_sweeper(interval_seconds=0.01))
    await asyncio.sleep(0.03)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
