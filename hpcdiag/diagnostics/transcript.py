"""Mirrors console output to a report file."""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, TextIO

from ..utils import get_logger
from .render import Console

logger = get_logger(__name__)


class TranscriptSession:
    """One open transcript file attached to the console."""

    def __init__(self, path: Path, stream: TextIO):
        self.path = path
        self.stream = stream
        self.closed = False


class TranscriptExporter:
    """
    Copies every console line to a file while a session is open.

    Use ``session()`` around a dispatcher run so the file is closed on
    every exit path.
    """

    def __init__(self, console: Console):
        self.console = console

    def start(self, path: Path) -> TranscriptSession:
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        stream = open(path, 'w', encoding='utf-8')
        stream.write(f"Transcript started {datetime.now():%Y-%m-%d %H:%M:%S}\n")
        session = TranscriptSession(path, stream)
        self.console.add_sink(stream)
        logger.info(f"Transcript started: {path}")
        return session

    def stop(self, session: TranscriptSession) -> None:
        if session.closed:
            return
        self.console.remove_sink(session.stream)
        try:
            session.stream.write(f"Transcript ended {datetime.now():%Y-%m-%d %H:%M:%S}\n")
        finally:
            session.stream.close()
            session.closed = True
        logger.info(f"Transcript saved to {session.path}")

    @contextmanager
    def session(self, path: Optional[Path]) -> Iterator[Optional[TranscriptSession]]:
        """Transcript for the duration of the block; no-op when path is None."""
        if path is None:
            yield None
            return
        session = self.start(path)
        try:
            yield session
        finally:
            self.stop(session)
