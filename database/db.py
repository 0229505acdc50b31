"""
Модуль для роботи з базою даних SQLite: конфігурація (ключ-значення)
та журнал завершених сесій.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from database.models import SessionRecord
from utils.logger import get_logger


class Database:
    """Клас для роботи з базою даних SQLite."""

    def __init__(self, db_file: str = "data/motor_control.db"):
        """
        Ініціалізація бази даних.

        Args:
            db_file: Шлях до файлу бази даних
        """
        self.db_file = Path(db_file)
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger()
        self._initialize_database()

    def _get_connection(self) -> sqlite3.Connection:
        """Отримати з'єднання з базою даних."""
        conn = sqlite3.connect(self.db_file)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_database(self) -> None:
        """Ініціалізувати структуру бази даних."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    start_epoch INTEGER NOT NULL,
                    end_epoch INTEGER NOT NULL,
                    duration_s INTEGER NOT NULL,
                    energy_wh REAL NOT NULL,
                    peak_power_w REAL NOT NULL,
                    peak_current_a REAL NOT NULL,
                    success INTEGER NOT NULL
                )
            """)

            conn.commit()
        finally:
            conn.close()
        self.logger.info(f"База даних ініціалізована: {self.db_file}")

    def save_config(self, values: Dict[str, Any]) -> bool:
        """
        Зберегти конфігурацію пристрою як пари ключ-значення.

        Args:
            values: Плоский словник конфігурації

        Returns:
            True якщо збереження успішне
        """
        try:
            conn = self._get_connection()
            try:
                conn.executemany(
                    "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                    [(key, json.dumps(value)) for key, value in values.items()]
                )
                conn.commit()
            finally:
                conn.close()
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            self.logger.error(f"Помилка збереження конфігурації: {e}")
            return False

    def load_config(self) -> Dict[str, Any]:
        """
        Завантажити збережену конфігурацію.

        Returns:
            Словник ключ-значення (порожній при помилці)
        """
        try:
            conn = self._get_connection()
            try:
                rows = conn.execute("SELECT key, value FROM config").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            self.logger.error(f"Помилка читання конфігурації: {e}")
            return {}

        values = {}
        for row in rows:
            try:
                values[row['key']] = json.loads(row['value'])
            except ValueError:
                self.logger.warning(f"Пошкоджене значення конфігурації: {row['key']}")
        return values

    def save_session(self, record: SessionRecord) -> bool:
        """
        Додати завершену сесію.

        Args:
            record: Запис сесії

        Returns:
            True якщо збереження успішне
        """
        try:
            conn = self._get_connection()
            try:
                conn.execute("""
                    INSERT INTO sessions (start_epoch, end_epoch, duration_s, energy_wh,
                                          peak_power_w, peak_current_a, success)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (record.start_epoch, record.end_epoch, record.duration_s, record.energy_wh,
                      record.peak_power_w, record.peak_current_a, int(record.success)))
                conn.commit()
            finally:
                conn.close()
            return True
        except sqlite3.Error as e:
            self.logger.error(f"Помилка збереження сесії: {e}")
            return False

    def get_sessions(self, limit: int = 50) -> List[SessionRecord]:
        """
        Отримати останні сесії.

        Args:
            limit: Максимальна кількість записів

        Returns:
            Список сесій від найстарішої до найновішої
        """
        try:
            conn = self._get_connection()
            try:
                rows = conn.execute("""
                    SELECT * FROM (
                        SELECT * FROM sessions ORDER BY id DESC LIMIT ?
                    ) ORDER BY id ASC
                """, (limit,)).fetchall()
            finally:
                conn.close()
            return [SessionRecord.from_dict(dict(row)) for row in rows]
        except sqlite3.Error as e:
            self.logger.error(f"Помилка отримання історії сесій: {e}")
            return []

    def cleanup_old_sessions(self, keep: int = 50) -> int:
        """
        Видалити найстаріші сесії, залишивши keep останніх.

        Returns:
            Кількість видалених записів
        """
        try:
            conn = self._get_connection()
            try:
                cursor = conn.execute("""
                    DELETE FROM sessions
                    WHERE id NOT IN (SELECT id FROM sessions ORDER BY id DESC LIMIT ?)
                """, (keep,))
                deleted = cursor.rowcount
                conn.commit()
            finally:
                conn.close()
            if deleted > 0:
                self.logger.info(f"Видалено {deleted} старих сесій")
            return deleted
        except sqlite3.Error as e:
            self.logger.error(f"Помилка очищення бази даних: {e}")
            return 0
