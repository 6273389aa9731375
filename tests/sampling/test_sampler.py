"""Tests for the sampler chain."""

import pytest
import torch

from tokengen.sampling import DistSampler, GreedySampler, SamplerChain, TokenCandidates, default_sampler_chain


class FixedLogitsContext:
    def __init__(self, logits, slot=0):
        self.logits = logits
        self.slot = slot

    def get_logits_ith(self, slot):
        assert slot == self.slot
        return self.logits


class RecordingStage:
    def __init__(self):
        self.accepted = []

    def sample(self, candidates):
        return candidates

    def accept(self, token_id):
        self.accepted.append(token_id)


def test_greedy_picks_argmax():
    candidates = GreedySampler().sample(TokenCandidates(torch.tensor([0.1, 2.0, -1.0, 1.5])))

    assert candidates.selected == 1


def test_greedy_tie_resolves_to_lowest_id():
    candidates = GreedySampler().sample(TokenCandidates(torch.tensor([1.0, 3.0, 3.0])))

    assert candidates.selected == 1


def test_dist_sampler_is_seeded():
    logits = torch.randn(100, generator=torch.Generator().manual_seed(7))

    draws_a = [DistSampler(seed=1234).sample(TokenCandidates(logits)).selected for _ in range(3)]
    sampler = DistSampler(seed=1234)
    first = sampler.sample(TokenCandidates(logits)).selected

    assert len(set(draws_a)) == 1
    assert first == draws_a[0]


def test_fresh_chains_repeat_the_same_draws():
    logits = torch.zeros(50)
    first, second = SamplerChain([DistSampler(seed=3)]), SamplerChain([DistSampler(seed=3)])
    ctx = FixedLogitsContext(logits)

    assert [first.sample(ctx, 0) for _ in range(5)] == [second.sample(ctx, 0) for _ in range(5)]


def test_dist_sampler_respects_distribution():
    logits = torch.full((10,), -1e9)
    logits[4] = 0.0

    assert DistSampler().sample(TokenCandidates(logits)).selected == 4


def test_default_chain_is_greedy_in_effect():
    logits = torch.tensor([0.5, 0.2, 4.0, 3.9])
    chain = default_sampler_chain()

    assert chain.sample(FixedLogitsContext(logits, slot=3), 3) == 2
    assert [type(stage) for stage in chain.stages] == [DistSampler, GreedySampler]


def test_chain_accept_reaches_every_stage():
    first, second = RecordingStage(), RecordingStage()
    chain = SamplerChain([first, second, GreedySampler()])

    token = chain.sample(FixedLogitsContext(torch.tensor([0.0, 1.0])), 0)
    chain.accept(token)
    chain.accept(0)

    assert chain.history == [1, 0]
    assert first.accepted == [1, 0]
    assert second.accepted == [1, 0]


def test_chain_without_selection_fails():
    chain = SamplerChain([RecordingStage()])

    with pytest.raises(RuntimeError, match="No sampler stage"):
        chain.sample(FixedLogitsContext(torch.tensor([1.0])), 0)


def test_empty_chain_rejected():
    with pytest.raises(ValueError):
        SamplerChain([])
