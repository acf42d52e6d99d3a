import random

from askq import prompts
from conftest import FixedRng


def test_no_variant_before_three_prior_turns():
    for turn in range(prompts.VARIANT_MIN_TURNS):
        assert prompts.decide_variant(turn, FixedRng(0.0)) is False


def test_variant_follows_the_draw():
    assert prompts.decide_variant(3, FixedRng(0.29)) is True
    assert prompts.decide_variant(3, FixedRng(0.3)) is False
    assert prompts.decide_variant(10, FixedRng(0.99)) is False


def test_seeded_rng_is_reproducible():
    first, second = random.Random(7), random.Random(7)
    reference = random.Random(7)

    a = [prompts.decide_variant(5, first) for _ in range(200)]
    b = [prompts.decide_variant(5, second) for _ in range(200)]

    assert a == b
    assert a == [reference.random() < prompts.VARIANT_PROBABILITY for _ in range(200)]
    # both outcomes occur, so the draw actually drives the decision
    assert True in a and False in a


def test_differently_seeded_rngs_diverge():
    draws_1 = random.Random(1)
    draws_2 = random.Random(2)
    seq_1 = [prompts.decide_variant(5, draws_1) for _ in range(200)]
    seq_2 = [prompts.decide_variant(5, draws_2) for _ in range(200)]
    assert seq_1 != seq_2


def test_select_system_prompt_counts_prior_user_turns():
    three_prior = [{"role": "user", "content": str(i)} for i in range(4)]
    two_prior = three_prior[:3]

    assert prompts.select_system_prompt(two_prior, FixedRng(0.0)) == prompts.SYSTEM_PROMPT
    chosen = prompts.select_system_prompt(three_prior, FixedRng(0.0))
    assert chosen.startswith(prompts.SYSTEM_PROMPT)
    assert prompts.VARIANT_PROMPT in chosen
