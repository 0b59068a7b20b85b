"""QA signal tracking shared by the pipeline stages."""


class QASignals:
    """Track QA signals for one pipeline stage."""

    def __init__(self, title: str = "QA SIGNALS"):
        self.title = title
        self.signals = {}

    def add(self, key: str, value):
        self.signals[key] = value

    def report(self) -> str:
        lines = [f"[{self.title}]"]
        for key, value in self.signals.items():
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
