from runner.classify import Outcome, classify
from runner.loop import CapturedOutput, RunLoop, RunSession, RunState

__all__ = ["CapturedOutput", "Outcome", "RunLoop", "RunSession", "RunState", "classify"]
