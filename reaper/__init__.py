from reaper.reaper import CycleResult, PortReaper, WatchSession

__all__ = ["CycleResult", "PortReaper", "WatchSession"]
