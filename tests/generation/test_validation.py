"""Tests for the context capacity checks."""

import pytest

from tokengen.errors import CapacityExceeded, GenerationError, PromptTooLong
from tokengen.generation.validation import validate_context_size


@pytest.mark.parametrize("n_prompt", [1, 5, 19])
@pytest.mark.parametrize("max_length", [20, 64])
def test_fits(n_prompt, max_length):
    assert validate_context_size(n_prompt, max_length, n_ctx=64) == max_length


@pytest.mark.parametrize("n_prompt,max_length", [(5, 5), (6, 5), (100, 20)])
def test_prompt_too_long(n_prompt, max_length):
    with pytest.raises(PromptTooLong) as exc_info:
        validate_context_size(n_prompt, max_length, n_ctx=1024)

    assert exc_info.value.n_prompt == n_prompt
    assert "max_length" in str(exc_info.value)


@pytest.mark.parametrize("n_prompt", [1, 10, 100])
def test_capacity_depends_only_on_max_length(n_prompt):
    with pytest.raises(CapacityExceeded) as exc_info:
        validate_context_size(n_prompt, max_length=65, n_ctx=64)

    assert exc_info.value.n_kv_req == 65
    assert exc_info.value.n_ctx == 64


def test_max_length_equal_to_context_size_fits():
    assert validate_context_size(3, max_length=64, n_ctx=64) == 64


def test_capacity_checked_first():
    with pytest.raises(CapacityExceeded):
        validate_context_size(200, max_length=100, n_ctx=50)


def test_errors_share_base_class():
    assert issubclass(CapacityExceeded, GenerationError)
    assert issubclass(PromptTooLong, GenerationError)
