"""
Flask JSON Dashboard for Apex Formatter

This module exposes the checker over HTTP so editors and CI bots can submit
Apex source text and receive diagnostics or fixed text back.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS

from .. import __version__
from ..core.config import LintConfig
from ..core.errors import ConfigError
from ..core.scanner import StyleScanner
from ..core.rules import BUILTIN_RULES

logger = logging.getLogger(__name__)


class StyleDashboard:
    """Checks submitted sources with a default or per-request configuration."""

    def __init__(self, config: Optional[LintConfig] = None):
        """
        Initialize the dashboard.

        Raises:
            ConfigError: When the default configuration is invalid
        """
        self.config = config or LintConfig()
        self.scanner = StyleScanner(self.config)

    def _scanner_for(self, config_data: Optional[Dict[str, Any]], autofix: bool) -> StyleScanner:
        if not config_data and self.config.autofix == autofix:
            return self.scanner
        config = LintConfig.from_dict(config_data) if config_data else replace(self.config)
        config.autofix = autofix
        return StyleScanner(config)

    def check_source(self, source: str, path: str = "<source>",
                     config_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Check one source text.

        Args:
            source: Apex source text
            path: Path recorded on diagnostics
            config_data: Optional external configuration mapping

        Returns:
            Dictionary with the file result

        Raises:
            ConfigError: When config_data is invalid
        """
        result = self._scanner_for(config_data, autofix=False).lint_source(source, path)
        return {'success': True, 'result': result.to_dict()}

    def fix_source(self, source: str, path: str = "<source>",
                   config_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Check one source text and return it with safe fixes applied."""
        result = self._scanner_for(config_data, autofix=True).lint_source(source, path)
        return {
            'success': True,
            'changed': result.changed,
            'fixed_text': result.fixed_text,
            'result': result.to_dict(),
        }


def _source_request():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, None, None, 'JSON body is required'
    source = data.get('source')
    if not isinstance(source, str):
        return None, None, None, 'source is required'
    config_data = data.get('config')
    if config_data is not None and not isinstance(config_data, dict):
        return None, None, None, 'config must be an object'
    return source, data.get('path') or '<source>', config_data, None


def create_app(config: Optional[LintConfig] = None):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Enable CORS for API endpoints
    CORS(app)

    dashboard = StyleDashboard(config)

    @app.route('/api/health')
    def api_health():
        return jsonify({'success': True, 'status': 'ok', 'version': __version__})

    @app.route('/api/rules')
    def api_rules():
        """API endpoint listing the rule catalogue."""
        return jsonify({
            'success': True,
            'rules': [
                {
                    'id': rule.id,
                    'category': rule.category.value,
                    'default_severity': rule.default_severity.value,
                    'fixable': rule.fixable,
                    'description': rule.description,
                }
                for rule in BUILTIN_RULES
            ]
        })

    @app.route('/api/check', methods=['POST'])
    def api_check():
        """API endpoint to check a source text."""
        source, path, config_data, error = _source_request()
        if error:
            return jsonify({'success': False, 'error': error}), 400
        try:
            return jsonify(dashboard.check_source(source, path, config_data))
        except ConfigError as e:
            logger.warning(f"Rejected configuration: {e}")
            return jsonify({'success': False, 'error': str(e)}), 400

    @app.route('/api/fix', methods=['POST'])
    def api_fix():
        """API endpoint to fix a source text."""
        source, path, config_data, error = _source_request()
        if error:
            return jsonify({'success': False, 'error': error}), 400
        try:
            return jsonify(dashboard.fix_source(source, path, config_data))
        except ConfigError as e:
            logger.warning(f"Rejected configuration: {e}")
            return jsonify({'success': False, 'error': str(e)}), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'success': False, 'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {error}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, host='0.0.0.0', port=8080)
