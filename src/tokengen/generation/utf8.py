"""
Incremental UTF-8 decoding of token bytes.

A token's bytes may end in the middle of a multi-byte character; the next token
completes it. The decoder holds back such an incomplete tail (at most 3 bytes)
until it can be emitted as a whole character.
"""

import codecs


class IncrementalUTF8Decoder:
    """
    Stateful byte-to-text converter scoped to one generation call.

    Only well-formed text is ever returned. Malformed interior sequences are
    replaced with U+FFFD, matching what a one-shot ``bytes.decode("utf-8", "replace")``
    of the whole stream yields. The incomplete tail still buffered when the call
    ends has no valid resolution and is dropped by :meth:`finish`.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> bytes:
        """Bytes of a not-yet-complete character buffered from earlier chunks."""
        return self._decoder.getstate()[0]

    def decode(self, data: bytes) -> str:
        """Returns the longest complete text available after appending ``data``."""
        return self._decoder.decode(data, final=False)

    def finish(self) -> bytes:
        """
        End the stream.

        Returns:
            The dangling incomplete bytes that were discarded (empty if none).
        """
        dropped = self.pending
        self._decoder.reset()
        return dropped
