import threading


class CancellationToken:
    """
    Cooperative cancellation signal for a running generation.

    The generation loop checks it at the top of every decoding iteration, so a
    cancel takes effect before the next token is sampled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
