# tests/test_generator.py

import random
import string
from datetime import datetime, timedelta, timezone

from reliable_send.generator import Garage, EventGenerator, PLATE_LENGTH
from reliable_send.models import Event, OccupancyEntry, Operation

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_generator(seed=42):
    return EventGenerator(random.Random(seed), clock=lambda: FIXED_NOW)


def test_first_event_is_always_enter():
    """Garasi kosong, jadi harus ENTER walau rng memilih EXIT."""
    for seed in range(20):
        gen = make_generator(seed)
        assert gen.generate().op is Operation.ENTER
        assert len(gen.garage) == 1


def test_exit_matches_open_enter():
    """Setiap EXIT merujuk ke ENTER yang masih parkir, tidak pernah dobel."""
    gen = make_generator(7)
    parked = {}
    for _ in range(2000):
        event = gen.generate()
        key = (event.tag, event.entity_id)
        if event.op is Operation.ENTER:
            parked[key] = parked.get(key, 0) + 1
        else:
            assert parked.get(key, 0) > 0
            parked[key] -= 1


def test_occupancy_tracks_enters_minus_exits():
    gen = make_generator(3)
    enters = exits = 0
    for _ in range(500):
        before = len(gen.garage)
        event = gen.generate()
        if event.op is Operation.ENTER:
            enters += 1
        else:
            exits += 1
        assert abs(len(gen.garage) - before) == 1
        assert len(gen.garage) == enters - exits >= 0
    assert exits > 0


def test_enter_event_fields():
    gen = make_generator()
    event = gen.generate()
    assert len(event.tag) == PLATE_LENGTH
    assert set(event.tag) <= set(string.ascii_letters + string.digits)
    assert 1 <= event.entity_id < 2000
    assert event.timestamp == FIXED_NOW


def test_exit_timestamp_is_10_to_30_minutes_later():
    gen = make_generator(11)
    offsets = set()
    for _ in range(1000):
        event = gen.generate()
        if event.op is Operation.EXIT:
            delta = event.timestamp - FIXED_NOW
            assert timedelta(minutes=10) <= delta < timedelta(minutes=30)
            offsets.add(delta)
    assert len(offsets) > 1


def test_same_seed_same_events():
    gen_a, gen_b = make_generator(99), make_generator(99)
    a = [gen_a.generate() for _ in range(50)]
    b = [gen_b.generate() for _ in range(50)]
    assert a == b


def test_undo_restores_garage():
    gen = make_generator(5)
    for _ in range(10):
        gen.generate()

    while True:
        before = sorted(gen.garage.tags())
        event = gen.generate()
        gen.undo(event)
        assert sorted(gen.garage.tags()) == before
        if event.op is Operation.EXIT:
            break


def test_garage_leave_random_removes_one():
    garage = Garage()
    for i in range(5):
        garage.park(OccupancyEntry(tag=f"T{i}", entity_id=i, entered_at=FIXED_NOW))

    rng = random.Random(1)
    left = {garage.leave_random(rng).tag for _ in range(5)}
    assert left == {f"T{i}" for i in range(5)}
    assert len(garage) == 0


def test_event_wire_format():
    event = Event(timestamp=FIXED_NOW, tag="AbC12345", op=Operation.EXIT, entity_id=12)
    data = event.to_bytes()
    assert b'"Plate":"AbC12345"' in data
    assert b'"Op":1' in data
    assert b'"Id":12' in data
    assert b'"Time":"2024-05-01T12:00:00Z"' in data
    assert Event.from_bytes(data) == event
