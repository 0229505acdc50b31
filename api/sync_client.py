"""
HTTP клієнт, що інкрементально вичитує журнали пристрою за курсором.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from utils.logger import get_logger


class TelemetrySyncClient:
    """Клієнт синхронізації вимірів і подій через /api/history та /api/events."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        auth: Optional[Tuple[str, str]] = None,
        page_size: int = 200
    ):
        """
        Ініціалізація клієнта.

        Args:
            base_url: Адреса пристрою, наприклад http://192.168.4.1
            timeout: Таймаут запиту (с)
            retry_attempts: Кількість спроб
            retry_delay: Пауза між спробами (с)
            auth: Пара (користувач, пароль) для команд
            page_size: Розмір сторінки запиту (max)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.auth = auth
        self.page_size = page_size
        self.logger = get_logger()

        self.cursors: Dict[str, int] = {'history': 0, 'events': 0}

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """GET з повторними спробами; None якщо всі спроби невдалі."""
        url = f"{self.base_url}{path}"

        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = requests.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                return response.json()

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if attempt < self.retry_attempts:
                    self.logger.debug(f"Помилка зв'язку з {url}: {e}. Спроба {attempt}/{self.retry_attempts}")
                    time.sleep(self.retry_delay)
                else:
                    self.logger.warning(f"Пристрій недоступний ({url}). Всі {self.retry_attempts} спроб вичерпано")

            except requests.exceptions.HTTPError as e:
                # HTTP помилки не потребують повтору
                self.logger.warning(f"HTTP помилка від пристрою: {e}")
                break

            except ValueError as e:
                self.logger.warning(f"Некоректна JSON відповідь від {url}: {e}")
                break

        return None

    def _poll(self, path: str, name: str, key: str) -> List[Dict[str, Any]]:
        since = self.cursors[name]
        data = self._get(path, {'since': since, 'max': self.page_size})
        if data is None:
            return []

        # Пристрій перезапустився: нумерація почалася спочатку
        seq_last = data.get('seq_last')
        if isinstance(seq_last, int) and seq_last < since:
            self.logger.info(f"Курсор {name} ({since}) попереду пристрою ({seq_last}), скидання")
            self.cursors[name] = 0
            data = self._get(path, {'since': 0, 'max': self.page_size})
            if data is None:
                return []

        self.cursors[name] = int(data.get('seq_end', self.cursors[name]))
        return data.get(key, [])

    def poll_samples(self) -> List[Dict[str, Any]]:
        """Нові виміри з моменту попереднього опитування."""
        return self._poll('/api/history', 'history', 'samples')

    def poll_events(self) -> List[Dict[str, Any]]:
        """Нові події з моменту попереднього опитування."""
        return self._poll('/api/events', 'events', 'events')

    def send_command(self, action: str, **payload: Any) -> Optional[Dict[str, Any]]:
        """
        Надіслати команду керування.

        Returns:
            JSON відповідь пристрою або None при помилці
        """
        body = dict(payload, action=action)
        try:
            response = requests.post(f"{self.base_url}/api/control", json=body,
                                     auth=self.auth, timeout=self.timeout)
            return response.json()
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"Не вдалося надіслати команду '{action}': {e}")
            return None
        except ValueError as e:
            self.logger.warning(f"Некоректна відповідь на команду '{action}': {e}")
            return None
