"""
Модуль для логування подій контролера двигуна.
"""

import logging
from pathlib import Path
from typing import Optional


LOGGER_NAME = 'motor_control'


class Logger:
    """Клас для налаштування та використання логування."""

    _instance: Optional['Logger'] = None
    _initialized = False

    def __new__(cls):
        """Singleton pattern для Logger."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Ініціалізація Logger (виконується тільки один раз)."""
        if not Logger._initialized:
            self.logger: Optional[logging.Logger] = None
            Logger._initialized = True

    def setup(
        self,
        log_file: Optional[str] = "logs/motor_control.log",
        log_level: int = logging.INFO,
        enable_console: bool = True
    ) -> None:
        """
        Налаштувати логування.

        Args:
            log_file: Шлях до файлу логів (None - без запису у файл)
            log_level: Рівень логування
            enable_console: Чи виводити логи в консоль
        """
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        date_format = '%Y-%m-%d %H:%M:%S'

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(log_level)

        # Очистити існуючі обробники
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(log_format, date_format))
            self.logger.addHandler(file_handler)

        if enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(log_level)
            console_handler.setFormatter(logging.Formatter(log_format, date_format))
            self.logger.addHandler(console_handler)

    def get_logger(self) -> logging.Logger:
        """
        Отримати об'єкт logger.

        Returns:
            Logger об'єкт
        """
        if self.logger is None:
            # Якщо logger не налаштований, створити базовий
            self.setup()
        return self.logger


def parse_level(level_name: Optional[str], default: int = logging.INFO) -> int:
    """Перетворити назву рівня ('debug', 'INFO', ...) на числовий рівень logging."""
    if not level_name:
        return default
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else default


# Глобальна функція для зручності
def get_logger() -> logging.Logger:
    """Отримати глобальний logger."""
    return Logger().get_logger()
