from .supervisor import LoopSupervisor

__all__ = ["LoopSupervisor"]
