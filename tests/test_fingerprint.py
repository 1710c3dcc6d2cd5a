from dataclasses import replace
from datetime import date

from timetable_sync.domain.fingerprint import FingerprintGate, fingerprint_changes
from timetable_sync.domain.models import Change, ChangeKind


def make_change(group="G1", start="08:15", subject="Math", kind=ChangeKind.REPLACEMENT) -> Change:
    return Change(group=group, date=date(2025, 6, 23), start=start, subject=subject, kind=kind, teacher="Smith")


def test_order_does_not_matter():
    a, b, c = make_change(), make_change(start="09:00"), make_change(group="G2")

    assert fingerprint_changes([a, b, c]) == fingerprint_changes([c, a, b])


def test_any_field_difference_changes_digest():
    base = make_change()
    variants = [
        replace(base, teacher="Jones"),
        replace(base, classroom="102"),
        replace(base, kind=ChangeKind.CANCELLATION),
        replace(base, date=date(2025, 6, 24)),
    ]

    digest = fingerprint_changes([base]).digest
    assert all(fingerprint_changes([variant]).digest != digest for variant in variants)


def test_empty_set_has_stable_fingerprint():
    assert fingerprint_changes([]) == fingerprint_changes([])
    assert fingerprint_changes([]).size == 0


def test_gate_only_changes_after_record():
    gate = FingerprintGate()
    first = fingerprint_changes([make_change()])

    assert gate.is_new(first)
    assert gate.is_new(first)
    gate.record(first)
    assert not gate.is_new(first)
    assert gate.is_new(fingerprint_changes([make_change(subject="Art")]))
    assert gate.last == first


def test_change_id_is_deterministic():
    assert make_change().change_id == make_change().change_id
    assert make_change().change_id != make_change(subject="Art").change_id
