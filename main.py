"""
Головний файл програми контролера реле двигуна.
"""

import argparse
import random
import signal
import sys
import time
from threading import Event
from typing import Optional

from api.server import APIServer
from controllers.device_config import DeviceConfig
from controllers.device_controller import DeviceController
from database.db import Database
from sensors.motor_simulator import SimulatedMotor
from utils.config_manager import ConfigManager
from utils.logger import Logger, parse_level


class MotorControlApp:
    """Головний клас програми."""

    def __init__(self, config_path: str = "config.yaml", seed: Optional[int] = None):
        """
        Ініціалізація програми.

        Args:
            config_path: Шлях до файлу конфігурації
            seed: Зерно генератора випадкових чисел симуляції
        """
        # Завантаження конфігурації
        self.config = ConfigManager(config_path)

        # Налаштування логування
        log_config = self.config.get_section('logging')
        logger = Logger()
        logger.setup(
            log_file=log_config.get('log_file', 'logs/motor_control.log'),
            log_level=parse_level(log_config.get('log_level')),
            enable_console=True
        )
        self.logger = logger.get_logger()

        # Валідація конфігурації
        try:
            self.config.validate()
        except ValueError as e:
            self.logger.error(f"Помилка валідації конфігурації: {e}")
            sys.exit(1)

        self.logger.info("Ініціалізація компонентів...")

        # База даних
        db_config = self.config.get_section('database')
        self.database = Database(db_config.get('db_file', 'data/motor_control.db'))

        # Симуляція двигуна та контролер
        sim_config = self.config.get_section('simulation')
        if seed is None:
            seed = sim_config.get('seed')
        rng = random.Random(seed)
        source = SimulatedMotor(sim_config, rng=random.Random(rng.random()))
        source.initialize()

        self.controller = DeviceController(
            source,
            config=DeviceConfig.from_dict(self.config.get_section('device')),
            rng=rng,
            database=self.database,
            glitches_enabled=sim_config.get('glitches_enabled', True)
        )

        # API сервер
        api_config = self.config.get_section('api')
        if api_config.get('enabled', True):
            self.api_server = APIServer(self.controller, self.config)
        else:
            self.api_server = None

        # Прапорець для завершення
        self.shutdown_event = Event()

        # Обробка сигналів
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.logger.info("Ініціалізація завершена")

    def _signal_handler(self, signum, frame):
        """Обробник сигналів для коректного завершення."""
        self.logger.info(f"Отримано сигнал {signum}, завершення роботи...")
        self.shutdown_event.set()

    def _log_status(self) -> None:
        status = self.controller.get_status()
        sample = status['sample'] or {}

        def fmt(value, unit):
            return f"{value:.1f}{unit}" if value is not None else "N/A"

        self.logger.info(
            f"Статус: {status['state']}, "
            f"струм={fmt(sample.get('current_a'), 'A')}, "
            f"двигун={fmt(sample.get('motor_c'), '°C')}, "
            f"плата={fmt(sample.get('board_c'), '°C')}, "
            f"аварія={status['fault_code']}"
        )

    def run(self) -> None:
        """Запустити головний цикл програми."""
        self.logger.info("Запуск контролера реле двигуна")

        # Запуск API сервера
        if self.api_server:
            self.api_server.start()
            time.sleep(1)  # Дати час серверу запуститися

        status_interval = self.config.get('logging.status_interval', 60)
        last_status_time = time.monotonic()

        try:
            while not self.shutdown_event.is_set():
                self.controller.tick()

                now = time.monotonic()
                if now - last_status_time >= status_interval:
                    self._log_status()
                    last_status_time = now

                # Очікування до наступного такту
                self.shutdown_event.wait(self.controller.config.period_ms / 1000.0)

        except KeyboardInterrupt:
            self.logger.info("Отримано сигнал переривання")
        except Exception as e:
            self.logger.critical(f"Критична помилка: {e}", exc_info=True)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Коректне завершення програми."""
        self.logger.info("Завершення роботи програми...")

        # Безпечно вимкнути реле та закрити сесію
        self.controller.execute('stop')

        if self.api_server:
            self.api_server.stop()

        self.logger.info("Програма завершена")


def main():
    """Головна функція."""
    parser = argparse.ArgumentParser(description='Контролер реле двигуна з захистом та телеметрією')
    parser.add_argument('--config', '-c', default='config.yaml', help='Шлях до файлу конфігурації')
    parser.add_argument('--seed', type=int, default=None, help='Зерно генератора симуляції')

    args = parser.parse_args()

    app = MotorControlApp(config_path=args.config, seed=args.seed)
    app.run()


if __name__ == '__main__':
    main()
