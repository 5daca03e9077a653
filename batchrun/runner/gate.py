class CancellationGate:
    """One-way switch that stops tasks from starting once flipped.

    Tasks already running are never interrupted; the gate is only consulted
    before a task body starts.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def signal_cancel(self) -> bool:
        """Flip the gate. Returns True only for the call that flipped it."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True
