from .bpe_tokenizer import BPETokenizer
from .byte_tokenizer import ByteTokenizer

__all__ = ["BPETokenizer", "ByteTokenizer"]
