"""Per-stage outcome bookkeeping and the end-of-run report."""
import threading
from collections import Counter, OrderedDict
from typing import List, Optional

from csrbatch.common.records import RecordState


class StageReport:
    def __init__(self, stage: str):
        self.stage = stage
        self.outcomes = OrderedDict()
        self._lock = threading.Lock()

    def record(self, alias: str, state: RecordState, reason: Optional[str] = None):
        with self._lock:
            self.outcomes[alias] = (state, reason)

    def stateOf(self, alias: str) -> Optional[RecordState]:
        entry = self.outcomes.get(alias)
        return entry[0] if entry else None

    def aliasesIn(self, state: RecordState) -> List[str]:
        return [a for a, (s, _) in self.outcomes.items() if s == state]

    @property
    def failed(self) -> List[str]:
        return self.aliasesIn(RecordState.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self.aliasesIn(RecordState.SKIPPED)

    @property
    def succeeded(self) -> List[str]:
        return [a for a, (s, _) in self.outcomes.items()
                if s not in (RecordState.FAILED, RecordState.SKIPPED)]

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def allFailed(self) -> bool:
        return self.attempted > 0 and not self.succeeded

    def counts(self) -> Counter:
        return Counter(s.value for s, _ in self.outcomes.values())


class RunSummary:
    def __init__(self):
        self.stages: List[StageReport] = []

    def stage(self, name: str) -> StageReport:
        report = StageReport(name)
        self.stages.append(report)
        return report

    def exitCode(self) -> int:
        return 1 if any(r.allFailed for r in self.stages) else 0

    def lines(self) -> List[str]:
        out = ["=== Run summary ==="]
        if not self.stages:
            out.append("(no stage was run)")
        for report in self.stages:
            counts = report.counts()
            detail = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "nothing to do"
            marker = "[FAIL]" if report.allFailed else "[+]"
            out.append(f"{marker} {report.stage}: {detail}")
            for alias in report.failed:
                out.append(f"    {alias}: {report.outcomes[alias][1]}")
        return out

    def show(self):
        for line in self.lines():
            print(line)
