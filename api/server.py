"""
REST API сервер контролера двигуна.
"""

from flask import Flask, jsonify, request
from flask_cors import CORS
from typing import Any, Dict, Optional
import threading

from api.auth import AuthChecker, AuthResult
from controllers.device_controller import CommandResult, DeviceController
from controllers.protection import COMMANDS
from telemetry.sync_service import SyncService
from utils.config_manager import ConfigManager
from utils.logger import get_logger


class APIServer:
    """Клас для REST API сервера."""

    def __init__(self, controller: DeviceController, config: ConfigManager):
        """
        Ініціалізація API сервера.

        Args:
            controller: Контролер пристрою
            config: Конфігурація
        """
        self.controller = controller
        self.config = config
        self.logger = get_logger()
        self.auth = AuthChecker(config.get_section('auth'))

        # Налаштування Flask
        api_config = config.get_section('api')
        self.host = api_config.get('host', '0.0.0.0')
        self.port = api_config.get('port', 8080)
        self.debug = api_config.get('debug', False)

        # Створити Flask додаток
        self.app = Flask(__name__)
        CORS(self.app)

        # Зареєструвати маршрути
        self._register_routes()

        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

    def _authorize(self):
        """Перевірити облікові дані; при відмові повернути відповідь 401."""
        result = self.auth.check(request)
        if result == AuthResult.OK:
            return None

        self.controller.report_auth_failure(missing=result == AuthResult.MISSING)
        self.logger.warning(f"Відхилено запит {request.method} {request.path}: {result.value}")
        response = jsonify({'ok': False, 'error': 'unauthorized'})
        response.status_code = 401
        if self.auth.mode == 'basic':
            response.headers['WWW-Authenticate'] = 'Basic realm="motor-control"'
        return response

    @staticmethod
    def _json_body() -> Optional[Dict[str, Any]]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    def _command(self, action: str, payload: Dict[str, Any]):
        result = self.controller.execute(action, payload)
        return jsonify(result.to_dict()), (200 if result.accepted else 400)

    def _register_routes(self) -> None:
        """Зареєструвати всі маршрути API."""

        @self.app.route('/api/status')
        def api_status():
            """Стан пристрою, останній вимір і справність датчиків."""
            return jsonify(self.controller.get_status())

        @self.app.route('/api/info')
        def api_info():
            """Інформація про пристрій."""
            return jsonify(self.controller.get_info())

        @self.app.route('/api/history')
        def api_history():
            """Виміри після курсора since."""
            result = self.controller.query_samples(request.args.get('since'), request.args.get('max'))
            return jsonify(SyncService.to_payload(result, 'samples'))

        @self.app.route('/api/events')
        def api_events():
            """Події після курсора since."""
            result = self.controller.query_events(request.args.get('since'), request.args.get('max'))
            return jsonify(SyncService.to_payload(result, 'events'))

        @self.app.route('/api/sessions')
        def api_sessions():
            """Журнал завершених сесій."""
            sessions = self.controller.list_sessions()
            return jsonify({'sessions': [s.to_dict() for s in sessions]})

        @self.app.route('/api/config', methods=['GET'])
        def api_config_get():
            return jsonify(self.controller.get_config())

        @self.app.route('/api/config', methods=['POST'])
        def api_config_post():
            """Часткове оновлення конфігурації."""
            denied = self._authorize()
            if denied is not None:
                return denied
            body = self._json_body()
            if body is None:
                return jsonify({'ok': False, 'error': 'invalid_json'}), 400
            return self._command('config_update', body)

        @self.app.route('/api/control', methods=['POST'])
        def api_control():
            """Команди start/stop/relay_on/relay_off/clear_fault."""
            denied = self._authorize()
            if denied is not None:
                return denied
            body = self._json_body()
            if body is None or not isinstance(body.get('action'), str):
                return jsonify({'ok': False, 'error': 'invalid_json'}), 400
            action = body['action']
            if action not in COMMANDS:
                self.logger.warning(f"Команда {action!r} не приймається через /api/control")
                return jsonify(CommandResult(False, action, 'unknown_action').to_dict()), 400
            return self._command(action, body)

        @self.app.route('/api/run_timer', methods=['POST'])
        def api_run_timer():
            denied = self._authorize()
            if denied is not None:
                return denied
            return self._command('run_timer', self._json_body() or {})

        @self.app.route('/api/calibrate', methods=['POST'])
        def api_calibrate():
            denied = self._authorize()
            if denied is not None:
                return denied
            return self._command('calibration_update', self._json_body() or {})

        @self.app.route('/api/rtc', methods=['POST'])
        def api_rtc():
            """Встановити епоху від зовнішнього джерела часу."""
            denied = self._authorize()
            if denied is not None:
                return denied
            return self._command('epoch_set', self._json_body() or {})

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({'ok': False, 'error': 'not_found'}), 404

    def start(self) -> None:
        """Запустити API сервер в окремому потоці."""
        if self.is_running:
            self.logger.warning("API сервер вже запущений")
            return

        def run_server():
            self.logger.info(f"Запуск API сервера на {self.host}:{self.port}")
            self.app.run(host=self.host, port=self.port, debug=self.debug, use_reloader=False)

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.is_running = True
        self.logger.info("API сервер запущено")

    def stop(self) -> None:
        """Зупинити API сервер."""
        # Flask не має прямого способу зупинки, тому просто позначаємо як зупинений
        self.is_running = False
        self.logger.info("API сервер зупинено")
