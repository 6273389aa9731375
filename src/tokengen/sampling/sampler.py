"""
Sampler chain for next-token selection.

A chain is an ordered sequence of stages. Each stage sees the candidate
distribution left by the previous one, may narrow it or pick a token, and is
told about the token finally accepted. New stages (temperature, top-k, ...) slot
in without touching the generation loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import torch

from tokengen.config import DEFAULT_SEED
from tokengen.types import EvaluationContext


@dataclass
class TokenCandidates:
    """Logits over the vocabulary plus the token selected so far (if any)."""

    logits: torch.Tensor
    selected: int | None = None


class SamplerStage(Protocol):
    def sample(self, candidates: TokenCandidates) -> TokenCandidates: ...

    def accept(self, token_id: int) -> None: ...


class DistSampler:
    """Seeded draw from the softmax distribution of the candidates."""

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.seed = seed
        self.generator = torch.Generator(device="cpu")
        self.generator.manual_seed(seed)

    def sample(self, candidates: TokenCandidates) -> TokenCandidates:
        probs = torch.softmax(candidates.logits.detach().float().cpu(), dim=-1)
        candidates.selected = int(torch.multinomial(probs, num_samples=1, generator=self.generator).item())
        return candidates

    def accept(self, token_id: int) -> None:
        pass


class GreedySampler:
    """Arg-max pick (ties resolve to the lowest token ID)."""

    def sample(self, candidates: TokenCandidates) -> TokenCandidates:
        candidates.selected = int(torch.argmax(candidates.logits, dim=-1).item())
        return candidates

    def accept(self, token_id: int) -> None:
        pass


class SamplerChain:
    """
    Runs its stages in order over the logits of one batch slot.

    Args:
        stages: Stages applied in order; the last stage's selection wins.
    """

    def __init__(self, stages: list[SamplerStage]) -> None:
        if not stages:
            raise ValueError("A sampler chain needs at least one stage")
        self.stages = list(stages)
        self.history: list[int] = []

    def sample(self, ctx: EvaluationContext, slot: int) -> int:
        """Selects the next token from the logits computed at ``slot`` of the last evaluated batch."""
        candidates = TokenCandidates(logits=ctx.get_logits_ith(slot))
        for stage in self.stages:
            candidates = stage.sample(candidates)

        if candidates.selected is None:
            raise RuntimeError("No sampler stage selected a token")
        return candidates.selected

    def accept(self, token_id: int) -> None:
        """Records the token actually used, updating every stage's state."""
        self.history.append(token_id)
        for stage in self.stages:
            stage.accept(token_id)


def default_sampler_chain(seed: int = DEFAULT_SEED) -> SamplerChain:
    """Seeded distributional draw followed by greedy selection."""
    return SamplerChain([DistSampler(seed), GreedySampler()])
