"""
Token sampling.

Provides:
- TokenCandidates: Logits plus the current selection
- DistSampler / GreedySampler: Chain stages
- SamplerChain: Ordered composition of stages
"""

from .sampler import DistSampler, GreedySampler, SamplerChain, SamplerStage, TokenCandidates, default_sampler_chain

__all__ = [
    "DistSampler",
    "GreedySampler",
    "SamplerChain",
    "SamplerStage",
    "TokenCandidates",
    "default_sampler_chain",
]
