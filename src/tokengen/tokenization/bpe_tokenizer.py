from pathlib import Path

from tokenizers import Tokenizer, decoders, models, normalizers, pre_tokenizers, trainers


def bytes_to_unicode() -> dict[int, str]:
    """
    Byte-to-character table used by byte-level BPE vocabularies (GPT-2 scheme).

    Printable bytes map to themselves; the rest are shifted to code points above 255
    so every vocabulary entry is a printable string.
    """
    printable = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("¡"), ord("¬") + 1))
        + list(range(ord("®"), ord("ÿ") + 1))
    )
    byte_values = printable[:]
    code_points = printable[:]
    n = 0
    for b in range(256):
        if b not in byte_values:
            byte_values.append(b)
            code_points.append(256 + n)
            n += 1
    return {b: chr(c) for b, c in zip(byte_values, code_points)}


_BYTE_DECODER: dict[str, int] = {c: b for b, c in bytes_to_unicode().items()}


class BPETokenizer:
    """
    A byte-level Byte Pair Encoding (BPE) tokenizer using the `tokenizers` library.

    Args:
        tokenizer (Tokenizer, optional): An existing tokenizers.Tokenizer instance.
        bos_token (str | None): Beginning-of-sequence token, if the vocabulary has one.
        eos_token (str | None): End-of-sequence token, if the vocabulary has one.
    """

    DEFAULT_SPECIAL_TOKENS = ["<unk>", "<s>", "</s>"]

    def __init__(self, tokenizer: Tokenizer = None, bos_token: str | None = "<s>", eos_token: str | None = "</s>"):
        if tokenizer is not None:
            self.tokenizer = tokenizer
        else:
            self.tokenizer = Tokenizer(models.BPE(unk_token="<unk>"))
            self.tokenizer.normalizer = normalizers.NFC()
            self.tokenizer.pre_tokenizer = pre_tokenizers.ByteLevel(add_prefix_space=False)
            self.tokenizer.decoder = decoders.ByteLevel()

        self.bos_token_id = self.tokenizer.token_to_id(bos_token) if bos_token else None
        self.eos_token_id = self.tokenizer.token_to_id(eos_token) if eos_token else None
        self._special_ids = {
            token_id
            for token_id, added in self.tokenizer.get_added_tokens_decoder().items()
            if added.special
        }

    @classmethod
    def train(
        cls,
        files: list[str],
        vocab_size: int = 5000,
        min_frequency: int = 2,
        special_tokens: list[str] | None = None,
    ) -> "BPETokenizer":
        """
        Trains a BPE tokenizer on the given files.

        Args:
            files (list[str]): List of paths to text files for training.
            vocab_size (int): The desired vocabulary size.
            min_frequency (int): The minimum frequency for a pair to be merged.
            special_tokens (list[str]): List of special tokens to include.

        Returns:
            BPETokenizer: A trained tokenizer instance.
        """
        tokenizer, trainer = cls._new_trainable(vocab_size, min_frequency, special_tokens)
        tokenizer.train(files, trainer)
        return cls(tokenizer)

    @classmethod
    def train_from_iterator(
        cls,
        texts: list[str],
        vocab_size: int = 5000,
        min_frequency: int = 2,
        special_tokens: list[str] | None = None,
    ) -> "BPETokenizer":
        """Trains a BPE tokenizer on in-memory texts."""
        tokenizer, trainer = cls._new_trainable(vocab_size, min_frequency, special_tokens)
        tokenizer.train_from_iterator(texts, trainer)
        return cls(tokenizer)

    @classmethod
    def _new_trainable(cls, vocab_size, min_frequency, special_tokens):
        if special_tokens is None:
            special_tokens = cls.DEFAULT_SPECIAL_TOKENS

        tokenizer = Tokenizer(models.BPE(unk_token="<unk>"))
        tokenizer.normalizer = normalizers.NFC()
        tokenizer.pre_tokenizer = pre_tokenizers.ByteLevel(add_prefix_space=False)
        tokenizer.decoder = decoders.ByteLevel()

        trainer = trainers.BpeTrainer(
            vocab_size=vocab_size,
            min_frequency=min_frequency,
            special_tokens=special_tokens,
            initial_alphabet=pre_tokenizers.ByteLevel.alphabet(),
        )
        return tokenizer, trainer

    @property
    def vocab_size(self) -> int:
        return self.tokenizer.get_vocab_size()

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        """
        Encodes a string into a list of token IDs.

        Args:
            text (str): The input text.
            add_bos (bool): Prepend the beginning-of-sequence token when the vocabulary has one.

        Returns:
            list[int]: The list of token IDs.
        """
        ids = self.tokenizer.encode(text, add_special_tokens=False).ids
        if add_bos and self.bos_token_id is not None:
            ids.insert(0, self.bos_token_id)
        return ids

    def token_to_bytes(self, token_id: int) -> bytes:
        """
        Raw bytes of one token, undoing the byte-level character mapping.

        Special tokens render as their text form.

        Raises:
            KeyError: If the token ID is outside the vocabulary.
        """
        piece = self.tokenizer.id_to_token(token_id)
        if piece is None:
            raise KeyError(f"Token ID '{token_id}' not found in tokenizer vocabulary.")
        if token_id in self._special_ids:
            return piece.encode("utf-8")

        data = bytearray()
        for char in piece:
            byte = _BYTE_DECODER.get(char)
            if byte is None:
                data.extend(char.encode("utf-8"))
            else:
                data.append(byte)
        return bytes(data)

    def is_eog(self, token_id: int) -> bool:
        return self.eos_token_id is not None and token_id == self.eos_token_id

    def save(self, path: str | Path) -> None:
        """Saves the tokenizer to a JSON file."""
        self.tokenizer.save(str(path))

    @classmethod
    def from_file(cls, path: str | Path) -> "BPETokenizer":
        """Loads a tokenizer from a JSON file."""
        return cls(Tokenizer.from_file(str(path)))
