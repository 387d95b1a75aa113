from mailbeacon.application.use_cases.admit_event import DedupGate
from mailbeacon.application.use_cases.check_mailbox import CheckMailboxUseCase, CheckResult

__all__ = ["DedupGate", "CheckMailboxUseCase", "CheckResult"]
