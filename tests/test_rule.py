import pytest

from xraystrategy.sampling.reservoir import CentralizedReservoir, Reservoir
from xraystrategy.sampling.rule import (
    CentralizedRule,
    Decision,
    Properties,
    Request,
    Rule,
    SamplingStatistics,
    wildcard_match,
)


class MockClock:
    def __init__(self, now=0):
        self.nanos = now * 1_000_000_000

    def __call__(self):
        return self.nanos / 1_000_000_000


def fixed(value):
    return lambda: value


def test_stale_rule():
    cr = CentralizedRule(
        requests=5,
        reservoir=CentralizedReservoir(refreshed_at=1500000000, interval=10),
    )
    assert cr.stale(1500000010) is True


def test_fresh_rule():
    cr = CentralizedRule(
        requests=5,
        reservoir=CentralizedReservoir(refreshed_at=1500000000, interval=10),
    )
    assert cr.stale(1500000009) is False


def test_inactive_rule():
    cr = CentralizedRule(
        requests=0,
        reservoir=CentralizedReservoir(refreshed_at=1500000000, interval=10),
    )
    assert cr.stale(1500000011) is False


def test_expired_reservoir_bernoulli_sample():
    reservoir = CentralizedReservoir(
        expires_at=1500000060,
        borrowed=True,
        used=0,
        capacity=10,
        current_epoch=1500000061,
    )
    csr = CentralizedRule(
        rule_name="r1",
        reservoir=reservoir,
        properties=Properties(rate=0.06),
        clock=MockClock(1500000061),
        rand=fixed(0.05),
    )
    sd = csr.sample()
    assert sd.sample is True
    assert sd.rule == "r1"
    assert csr.sampled == 1
    assert csr.requests == 1


def test_expired_reservoir_borrows_once_per_second():
    reservoir = CentralizedReservoir(
        expires_at=1500000060, capacity=10, current_epoch=1500000061
    )
    csr = CentralizedRule(
        rule_name="r1",
        reservoir=reservoir,
        properties=Properties(rate=0.0),
        clock=MockClock(1500000061),
        rand=fixed(0.5),
    )
    first = csr.sample()
    second = csr.sample()
    assert first == Decision(sample=True, rule="r1")
    assert second == Decision(sample=False, rule="r1")
    assert csr.borrows == 1
    assert csr.sampled == 0
    assert csr.requests == 2


def test_take_from_quota_sample():
    reservoir = CentralizedReservoir(
        quota=10, expires_at=1500000060, current_epoch=1500000000, used=0
    )
    csr = CentralizedRule(
        rule_name="r1", reservoir=reservoir, clock=MockClock(1500000000)
    )
    sd = csr.sample()
    assert sd.sample is True
    assert sd.rule == "r1"
    assert csr.sampled == 1
    assert csr.requests == 1
    assert csr.reservoir.used == 1


def test_bernoulli_sample_positive():
    reservoir = CentralizedReservoir(
        quota=10, expires_at=1500000060, current_epoch=1500000000, used=10
    )
    csr = CentralizedRule(
        rule_name="r1",
        reservoir=reservoir,
        properties=Properties(rate=0.06),
        rand=fixed(0.05),
        clock=MockClock(1500000000),
    )
    sd = csr.sample()
    assert sd.sample is True
    assert sd.rule == "r1"
    assert csr.sampled == 1
    assert csr.requests == 1
    assert csr.reservoir.used == 10


def test_bernoulli_sample_negative():
    reservoir = CentralizedReservoir(
        quota=10, expires_at=1500000060, current_epoch=1500000000, used=10
    )
    csr = CentralizedRule(
        rule_name="r1",
        reservoir=reservoir,
        properties=Properties(rate=0.06),
        rand=fixed(0.07),
        clock=MockClock(1500000000),
    )
    sd = csr.sample()
    assert sd.sample is False
    assert sd.rule == "r1"
    assert csr.sampled == 0
    assert csr.requests == 1
    assert csr.reservoir.used == 10


def test_reservoir_sample():
    lr = Reservoir(
        capacity=10, used=5, current_epoch=1500000000, clock=MockClock(1500000000)
    )
    lsr = Rule(reservoir=lr)
    sd = lsr.sample()
    assert sd.sample is True
    assert sd.rule is None
    assert lsr.reservoir.used == 6


def test_local_bernoulli_sample():
    lr = Reservoir(
        capacity=10, used=10, current_epoch=1500000000, clock=MockClock(1500000000)
    )
    lsr = Rule(reservoir=lr, rand=fixed(0.07), properties=Properties(rate=0.06))
    sd = lsr.sample()
    assert sd.sample is False
    assert sd.rule is None
    assert lsr.reservoir.used == 10


def test_snapshot():
    csr = CentralizedRule(
        rule_name="rule1",
        requests=100,
        sampled=12,
        borrows=2,
        clock=MockClock(1500000000),
    )
    ss = csr.snapshot()

    assert (csr.requests, csr.sampled, csr.borrows) == (0, 0, 0)
    assert ss.request_count == 100
    assert ss.sampled_count == 12
    assert ss.borrow_count == 2
    assert ss.rule_name == "rule1"
    assert ss.timestamp == 1500000000


def test_statistics_to_dict():
    stats = SamplingStatistics("r1", 10, 2, 1, 1500000000.0, client_id="c1")
    assert stats.to_dict() == {
        "RuleName": "r1",
        "RequestCount": 10,
        "SampledCount": 2,
        "BorrowCount": 1,
        "Timestamp": 1500000000.0,
        "ClientID": "c1",
    }
    assert "ClientID" not in SamplingStatistics("r1", 0, 0, 0, 0.0).to_dict()


@pytest.mark.parametrize(
    "pattern, text, expected",
    [
        ("*", "anything", True),
        ("a?c", "ABC", True),
        ("", "", True),
        ("", "a", False),
        ("foo.*", "foo.bar", True),
        ("a.c", "abc", False),
        ("/bar/*", "/foo/bar", False),
        ("*.foo.com", "www.FOO.com", True),
    ],
)
def test_wildcard_match(pattern, text, expected):
    assert wildcard_match(pattern, text) is expected


def test_properties_applies_to():
    p = Properties(host="*.foo.com", url_path="/bar/*", http_method="GET")
    assert p.applies_to("www.foo.com", "/bar/x", "get") is True
    assert p.applies_to("", "", "") is True
    assert p.applies_to("www.bar.com", "/bar/x", "GET") is False
    assert p.applies_to("www.foo.com", "/bar/x", "POST") is False


def test_centralized_rule_applies_to_best_effort_service_type():
    rule = CentralizedRule(
        properties=Properties(
            host="www.foo.com",
            http_method="POST",
            url_path="/resource/bar",
            service_name="localhost",
        ),
        service_type="AWS::EC2::Instance",
    )
    request = Request(
        host="www.foo.com", url="/resource/bar", method="POST", service_name="localhost"
    )
    assert rule.applies_to(request) is True
    request.service_type = "AWS::EC2::Instance"
    assert rule.applies_to(request) is True
    request.service_type = "AWS::ECS::Container"
    assert rule.applies_to(request) is False


def test_centralized_rule_is_hashable_by_identity():
    a = CentralizedRule(rule_name="r1")
    b = CentralizedRule(rule_name="r1")
    assert a == b
    assert len({a, b}) == 2