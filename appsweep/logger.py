import threading

INFO = "info"
WARNING = "warning"


class SweepLogger:
    """Protocol for logging from the engine."""
    def log(self, message, level=INFO):
        if level == WARNING:
            print(f"[ENGINE] WARNING: {message}")
        else:
            print(f"[ENGINE] {message}")


class DiagnosticLog(SweepLogger):
    """
    Printing logger that also keeps every message.
    One instance is the diagnostic log of a scan or removal run, so skipped
    roots and unreadable manifests can be shown after the fact.
    """
    def __init__(self, echo=True):
        self.echo = echo
        self.entries = []
        self._lock = threading.Lock()

    def log(self, message, level=INFO):
        with self._lock:
            self.entries.append((level, message))
        if self.echo:
            super().log(message, level)

    def messages(self):
        with self._lock:
            return [message for _, message in self.entries]

    def warnings(self):
        with self._lock:
            return [message for level, message in self.entries if level == WARNING]

    def clear(self):
        with self._lock:
            self.entries = []


def warn(logger, message):
    if logger:
        logger.log(message, WARNING)
