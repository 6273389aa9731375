#!/usr/bin/env python3
"""Basic streaming generation example with a randomly initialized model."""

from tokengen import GenerationConfig, TextGenerator, stdout_sink
from tokengen.models import init_model_context
from tokengen.tokenization import ByteTokenizer
from tokengen.utils import configure_logging

configure_logging("INFO", json_format=False)

# 1. Build a small model over the byte vocabulary (untrained, so output is random)
model_context = init_model_context(ByteTokenizer(), context_size=256, hidden_size=64, num_layers=2, num_heads=4)

# 2. Generate, streaming each fragment to stdout as soon as it forms valid text
generator = TextGenerator(model_context, GenerationConfig(max_length=64, batch_size=32))
prompt = "Hello"
result = generator.generate(prompt, sink=stdout_sink)

print()
print(f"Prompt tokens: {result.n_prompt_tokens}")
print(f"Finish reason: {result.finish_reason.value}")
print(f"Stats: {result.stats}")
