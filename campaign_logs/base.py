from abc import ABC, abstractmethod

LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}


class Logger(ABC):
    min_level = "DEBUG"

    def enabled(self, level: str) -> bool:
        return LEVELS.get(level, 0) >= LEVELS.get(self.min_level, 0)

    @abstractmethod
    def info(self, msg: str, **data): ...

    @abstractmethod
    def debug(self, msg: str, **data): ...

    @abstractmethod
    def warning(self, msg: str, **data): ...

    @abstractmethod
    def error(self, msg: str, **data): ...
