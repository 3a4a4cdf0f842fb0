from dataclasses import dataclass, field
from typing import Optional

from claudecat.calculations.p90 import P90Calculator, P90Config


@dataclass
class Counts:
    input_tokens: int = 0
    output_tokens: int = 0

    def total_tokens(self):
        return self.input_tokens + self.output_tokens


@dataclass
class Block:
    total_tokens: int = 0
    is_gap: bool = False
    is_active: bool = False
    token_counts: Optional[Counts] = field(default_factory=Counts)
    cost_usd: float = 0.0
    sent_messages_count: int = 0


def test_empty_blocks_give_default_minimum():
    assert P90Calculator().calculate_p90_limit([], use_cache=False) == 1_000_000


def test_gaps_and_active_blocks_are_ignored():
    blocks = [Block(total_tokens=5_000_000, is_gap=True), Block(total_tokens=5_000_000, is_active=True)]
    assert P90Calculator().calculate_p90_limit(blocks, use_cache=False) == 1_000_000


def test_limit_sessions_are_preferred():
    blocks = [Block(total_tokens=960_000), Block(total_tokens=2_000_000), Block(total_tokens=500_000)]
    assert P90Calculator().calculate_p90_limit(blocks, use_cache=False) == 2_000_000


def test_small_sessions_are_raised_to_minimum():
    blocks = [Block(total_tokens=t) for t in (100, 200, 300)]
    assert P90Calculator().calculate_p90_limit(blocks, use_cache=False) == 1_000_000


def test_completed_sessions_used_when_no_limit_hit():
    calc = P90Calculator(P90Config(default_min_limit=0))
    blocks = [Block(total_tokens=t * 100) for t in range(10, 0, -1)]
    assert calc.calculate_p90_limit(blocks, use_cache=False) == 1000


def test_token_counts_used_when_total_is_zero():
    calc = P90Calculator(P90Config(default_min_limit=0))
    blocks = [Block(total_tokens=0, token_counts=Counts(input_tokens=40, output_tokens=2))]
    assert calc.calculate_p90_limit(blocks, use_cache=False) == 42


def test_result_is_one_of_the_sessions():
    calc = P90Calculator(P90Config(default_min_limit=0))
    values = [17, 3, 99, 45, 8, 61, 23]
    result = calc.calculate_p90_limit([Block(total_tokens=v) for v in values], use_cache=False)
    assert result in values
    assert result >= sorted(values)[len(values) // 2]


def test_cached_value_is_reused():
    calc = P90Calculator(P90Config(default_min_limit=0))
    first = calc.calculate_p90_limit([Block(total_tokens=500)], use_cache=True)
    second = calc.calculate_p90_limit([Block(total_tokens=700)], use_cache=True)
    assert first == 500
    assert second == 500
    assert calc.calculate_p90_limit([Block(total_tokens=700)], use_cache=False) == 700


def test_zero_ttl_cache_expires():
    calc = P90Calculator(P90Config(default_min_limit=0, cache_ttl_seconds=0))
    calc.calculate_p90_limit([Block(total_tokens=500)], use_cache=True)
    assert calc.calculate_p90_limit([Block(total_tokens=700)], use_cache=True) == 700


def test_cost_p90_default():
    assert P90Calculator().cost_p90([]) == 100.0
    assert P90Calculator().cost_p90([Block(cost_usd=0.0), Block(cost_usd=9.0, is_active=True)]) == 100.0


def test_cost_p90_picks_from_costs():
    blocks = [Block(cost_usd=c) for c in (2.5, 7.25, 1.0)]
    assert P90Calculator().cost_p90(blocks) == 7.25


def test_messages_p90_default():
    assert P90Calculator().messages_p90([Block(sent_messages_count=30, is_gap=True)]) == 150


def test_messages_p90_picks_from_counts():
    blocks = [Block(sent_messages_count=m) for m in (12, 40, 5, 0)]
    assert P90Calculator().messages_p90(blocks) == 40