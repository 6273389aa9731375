class ByteTokenizer:
    """
    A byte-level tokenizer.

    Every byte value 0-255 is its own token, so any text can be encoded and a
    multi-byte character is spread over several consecutive tokens. Two special
    tokens follow the byte range: a beginning-of-sequence marker and an
    end-of-sequence marker that ends generation.
    """

    BOS_TOKEN = "<s>"
    EOS_TOKEN = "</s>"

    def __init__(self):
        self.bos_token_id: int = 256
        self.eos_token_id: int = 257
        self.vocab_size: int = 258
        self._specials: dict[int, str] = {
            self.bos_token_id: self.BOS_TOKEN,
            self.eos_token_id: self.EOS_TOKEN,
        }

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        """
        Encodes text into byte tokens.

        Args:
            text (str): The input text.
            add_bos (bool): Prepend the beginning-of-sequence token.

        Returns:
            list[int]: Token IDs.
        """
        if not isinstance(text, str):
            raise TypeError("Input text must be a string.")

        tokens = list(text.encode("utf-8"))
        if add_bos:
            tokens.insert(0, self.bos_token_id)
        return tokens

    def token_to_bytes(self, token_id: int) -> bytes:
        """
        Raw bytes of one token. Special tokens render as their text form.

        Raises:
            KeyError: If the token ID is outside the vocabulary.
        """
        if 0 <= token_id < 256:
            return bytes([token_id])
        try:
            return self._specials[token_id].encode("utf-8")
        except KeyError:
            raise KeyError(f"Token ID '{token_id}' not found in tokenizer vocabulary.") from None

    def is_eog(self, token_id: int) -> bool:
        return token_id == self.eos_token_id
