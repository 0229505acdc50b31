"""
Модуль для управління конфігурацією програми.
"""

import yaml
from typing import Dict, Any
from pathlib import Path


AUTH_MODES = ('basic', 'token')


class ConfigManager:
    """Клас для завантаження та управління конфігурацією."""

    def __init__(self, config_path: str = "config.yaml"):
        """
        Ініціалізація ConfigManager.

        Args:
            config_path: Шлях до файлу конфігурації
        """
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> None:
        """Завантажити конфігурацію з файлу."""
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Файл конфігурації не знайдено: {self.config_path}\n"
                f"Скопіюйте config.example.yaml як config.yaml та налаштуйте його."
            )

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self.config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Помилка парсингу YAML: {e}")
        except OSError as e:
            raise RuntimeError(f"Помилка завантаження конфігурації: {e}")

        if not isinstance(self.config, dict):
            raise ValueError("Кореневий елемент конфігурації повинен бути словником")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Отримати значення з конфігурації за ключем.

        Args:
            key: Ключ у форматі 'section.subsection.key' або просто 'key'
            default: Значення за замовчуванням, якщо ключ не знайдено

        Returns:
            Значення з конфігурації або default
        """
        keys = key.split('.')
        value = self.config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Отримати всю секцію конфігурації.

        Args:
            section: Назва секції

        Returns:
            Словник з налаштуваннями секції або порожній словник
        """
        return self.config.get(section) or {}

    def validate(self) -> bool:
        """
        Валідація конфігурації.

        Returns:
            True якщо конфігурація валідна
        """
        required_sections = ['device', 'api', 'auth']

        for section in required_sections:
            if section not in self.config:
                raise ValueError(f"Відсутня обов'язкова секція: {section}")

        # Перевірка автентифікації
        auth = self.get_section('auth')
        mode = auth.get('mode', 'basic')
        if mode not in AUTH_MODES:
            raise ValueError(f"Невідомий режим автентифікації: {mode}")
        if mode == 'token' and not auth.get('token'):
            raise ValueError("Режим 'token' потребує непорожнього auth.token")

        # Перевірка порту API
        port = self.get('api.port', 8080)
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ValueError(f"Некоректний порт API: {port}")

        return True

    def reload(self) -> None:
        """Перезавантажити конфігурацію з файлу."""
        self.load_config()
