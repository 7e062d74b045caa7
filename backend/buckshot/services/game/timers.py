import logging

logger = logging.getLogger(__name__)


class PhaseTimers:
    """Runs phase callbacks after a delay.

    Callbacks are Socket.IO background tasks, so nothing ever blocks a
    handler. With ``inline`` set (tests) the callback runs synchronously,
    which keeps control flow deterministic. Callbacks are responsible for
    checking that the room they were scheduled for is still current.
    """

    def __init__(self, socketio, inline: bool = False):
        self.socketio = socketio
        self.inline = inline

    def call_later(self, delay: float, fn, *args) -> None:
        if self.inline:
            fn(*args)
            return

        def _runner():
            if delay > 0:
                self.socketio.sleep(delay)
            try:
                fn(*args)
            except Exception:
                logger.exception(f"[timer-error] callback={getattr(fn, '__name__', fn)} args={args}")

        self.socketio.start_background_task(_runner)
