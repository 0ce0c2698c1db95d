"""
Slicer Profile Service - Main Application
=========================================

JSON API over the signed-in user's printer profile catalog.

Run: python -m slicer_profile_service
"""

import logging
import sys
import tempfile
from datetime import datetime
from pathlib import Path

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from . import __version__, config
from .context import ApplicationContext
from .exceptions import ProfileError

logger = logging.getLogger(__name__)

CONTEXT_KEY = 'slicer_profile_context'

api = Blueprint('api', __name__)


# =============================================================================
# Helpers
# =============================================================================

def _context() -> ApplicationContext:
    return current_app.extensions[CONTEXT_KEY]


def _manager():
    """Current user's profile manager, loading it on first use."""
    return _context().reload_active_user()


def _check_api_key():
    """Validate API key from request."""
    api_key = current_app.config['API_KEY']
    data = request.get_json(silent=True) or {}
    auth_header = request.headers.get('Authorization', '')

    # Check body
    if data.get('api_key') == api_key:
        return True

    # Check header (Bearer token)
    if auth_header.startswith('Bearer ') and auth_header[7:] == api_key:
        return True

    return False


def _unauthorized():
    return jsonify({'success': False, 'error': 'Invalid API key'}), 401


def _not_found(what='Printer'):
    return jsonify({'success': False, 'error': f'{what} not found'}), 404


@api.after_app_request
def _run_idle_tasks(response):
    """Deferred work runs once the request that queued it is handled."""
    _context().idle.run_pending()
    return response


@api.app_errorhandler(ProfileError)
def _profile_error(e):
    logger.error("Profile error: %s", e)
    return jsonify({'success': False, 'error': str(e)}), 500


# =============================================================================
# Health & Info Endpoints
# =============================================================================

@api.route('/health', methods=['GET'])
def health():
    """Health check with system info."""
    import platform

    manager = _context().profile_manager
    return jsonify({
        'status': 'online',
        'version': __version__,
        'platform': platform.system(),
        'python': sys.version.split()[0],
        'user': manager.user_name if manager else None,
        'profiles_registered': len(manager.active_profiles) if manager else 0,
        'timestamp': datetime.now().isoformat(),
    })


@api.route('/api', methods=['GET'])
def api_info():
    """API info (JSON)."""
    return jsonify({
        'service': 'Slicer Profile Service',
        'version': __version__,
        'status': 'running',
        'endpoints': {
            'health': '/health',
            'session': '/api/session',
            'profiles': '/api/profiles',
            'oem': '/api/oem',
        }
    })


# =============================================================================
# Session
# =============================================================================

@api.route('/api/session', methods=['GET'])
def get_session():
    """Signed-in user and open printers."""
    manager = _manager()
    return jsonify({
        'success': True,
        'user': manager.user_name,
        'is_guest': manager.is_guest_profile,
        'open_printers': manager.open_printer_ids,
    })


@api.route('/api/session/user', methods=['POST'])
def switch_user():
    """Sign in as another user (empty name for guest)."""
    if not _check_api_key():
        return _unauthorized()

    data = request.get_json(silent=True) or {}
    manager = _context().sign_in(data.get('user_name'))

    return jsonify({
        'success': True,
        'user': manager.user_name,
        'profiles': [p.to_dict() for p in manager.active_profiles],
    })


# =============================================================================
# Profile Management API
# =============================================================================

@api.route('/api/profiles', methods=['GET'])
def list_profiles():
    """List the active (not deleted) printer profiles."""
    manager = _manager()
    open_ids = set(manager.open_printer_ids)

    profiles = []
    for info in manager.active_profiles:
        profile = info.to_dict()
        profile['is_open'] = info.id in open_ids
        profiles.append(profile)

    return jsonify({
        'success': True,
        'profiles': profiles,
        'count': len(profiles)
    })


@api.route('/api/profiles', methods=['POST'])
def create_profile():
    """Create a printer from a public OEM profile."""
    if not _check_api_key():
        return _unauthorized()

    data = request.get_json()
    if not data:
        return jsonify({'success': False, 'error': 'Request body required'}), 400

    for field in ['make', 'model', 'name']:
        if not data.get(field):
            return jsonify({'success': False, 'error': f'{field} required'}), 400

    settings = _manager().create_printer(data['make'], data['model'], data['name'])
    if settings is None:
        return jsonify({
            'success': False,
            'error': f"No profile available for {data['make']} {data['model']}"
        }), 404

    return jsonify({
        'success': True,
        'printer': _manager().get(settings.id).to_dict(),
        'message': 'Printer created successfully'
    }), 201


@api.route('/api/profiles/import', methods=['POST'])
def import_profile():
    """Import an uploaded .printer or legacy .ini file."""
    if not _check_api_key():
        return _unauthorized()

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'success': False, 'error': 'file required'}), 400

    manager = _manager()
    before = {p.id for p in manager.profiles}

    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / secure_filename(upload.filename)
        upload.save(str(path))
        imported = manager.import_from_existing(path)

    if not imported:
        return jsonify({'success': False, 'error': 'Not a valid settings file'}), 400

    added = [p.to_dict() for p in manager.profiles if p.id not in before]
    return jsonify({
        'success': True,
        'printer': added[0] if added else None,
        'message': 'Printer imported successfully'
    }), 201


@api.route('/api/profiles/<printer_id>', methods=['GET'])
def get_profile(printer_id):
    """Get a catalog record."""
    info = _manager().get(printer_id)
    if not info or info.marked_for_delete:
        return _not_found()

    return jsonify({
        'success': True,
        'printer': info.to_dict()
    })


@api.route('/api/profiles/<printer_id>', methods=['DELETE'])
def delete_profile(printer_id):
    """Mark a printer deleted."""
    if not _check_api_key():
        return _unauthorized()

    manager = _manager()
    if printer_id not in manager:
        return _not_found()

    manager.delete_printer(printer_id)

    return jsonify({
        'success': True,
        'message': 'Printer deleted'
    })


@api.route('/api/profiles/<printer_id>/open', methods=['POST'])
def open_profile(printer_id):
    """Open a printer in the session."""
    if not _check_api_key():
        return _unauthorized()

    settings = _context().open_printer(printer_id)
    if settings is None:
        return _not_found()

    return jsonify({
        'success': True,
        'open_printers': _manager().open_printer_ids,
    })


@api.route('/api/profiles/<printer_id>/close', methods=['POST'])
def close_profile(printer_id):
    """Close a printer in the session."""
    if not _check_api_key():
        return _unauthorized()

    _context().close_printer(printer_id)

    return jsonify({
        'success': True,
        'open_printers': _manager().open_printer_ids,
    })


# =============================================================================
# Printer Settings
# =============================================================================

@api.route('/api/profiles/<printer_id>/settings', methods=['GET'])
def get_settings(printer_id):
    """Effective settings of a printer."""
    settings = _manager().load_settings(printer_id)
    if settings is None:
        return _not_found()

    return jsonify({
        'success': True,
        'id': settings.id,
        'name': settings.name,
        'settings': settings.effective_settings(),
    })


@api.route('/api/profiles/<printer_id>/settings/<key>', methods=['GET'])
def get_setting(printer_id, key):
    """Effective value of one setting and the layer it comes from."""
    settings = _manager().load_settings(printer_id)
    if settings is None:
        return _not_found()

    value, layer = settings.get_value_and_layer_name(key)
    return jsonify({
        'success': True,
        'key': key,
        'value': value,
        'layer': layer,
    })


@api.route('/api/profiles/<printer_id>/settings/<key>', methods=['PUT'])
def set_setting(printer_id, key):
    """Override a setting in the user layer."""
    if not _check_api_key():
        return _unauthorized()

    data = request.get_json()
    if not data or 'value' not in data:
        return jsonify({'success': False, 'error': 'value required'}), 400

    manager = _manager()
    settings = manager.load_settings(printer_id)
    if settings is None:
        return _not_found()

    settings.set_value(key, data['value'])
    manager.save_settings(settings)

    value, layer = settings.get_value_and_layer_name(key)
    return jsonify({'success': True, 'key': key, 'value': value, 'layer': layer})


@api.route('/api/profiles/<printer_id>/settings/<key>', methods=['DELETE'])
def clear_setting(printer_id, key):
    """Remove a user override."""
    if not _check_api_key():
        return _unauthorized()

    manager = _manager()
    settings = manager.load_settings(printer_id)
    if settings is None:
        return _not_found()

    settings.clear_value(key)
    manager.save_settings(settings)

    value, layer = settings.get_value_and_layer_name(key)
    return jsonify({'success': True, 'key': key, 'value': value, 'layer': layer})


# =============================================================================
# OEM Profiles
# =============================================================================

@api.route('/api/oem', methods=['GET'])
def list_oem():
    """Makes and models with a public profile."""
    oem_profiles = _context().oem_profiles
    return jsonify({
        'success': True,
        'makes': {make: oem_profiles.models(make) for make in oem_profiles.makes()},
    })


@api.route('/api/oem/refresh', methods=['POST'])
def refresh_oem():
    """Pull the public device index from the profile service."""
    if not _check_api_key():
        return _unauthorized()

    if not _context().refresh_oem_profiles():
        return jsonify({'success': False, 'error': 'Profile service unavailable'}), 503

    return jsonify({'success': True})


# =============================================================================
# Application Setup
# =============================================================================

def create_app(context: ApplicationContext = None, api_key: str = None) -> Flask:
    """Create the Flask app around a context."""
    app = Flask(__name__)
    app.config['API_KEY'] = api_key or config.API_KEY
    app.extensions[CONTEXT_KEY] = context or ApplicationContext.from_config()
    CORS(app)
    app.register_blueprint(api)
    return app


# =============================================================================
# Main
# =============================================================================

def main():
    """Run the service."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    context = ApplicationContext.from_config()
    manager = context.reload_active_user()
    manager.ensure_printers_imported()

    print("=" * 60)
    print("  Slicer Profile Service")
    print("=" * 60)
    print(f"  Version: {__version__}")
    print(f"  Port: {config.PORT}")
    print(f"  Data: {context.data_dir}")
    print(f"  User: {manager.user_name}")
    print(f"  Profile service: {config.PROFILE_SERVICE_URL or 'disabled'}")
    print("=" * 60)
    print("  API Endpoints:")
    print("    GET  /health                          - Health check")
    print("    GET  /api/session                     - Signed-in user")
    print("    POST /api/session/user                - Switch user")
    print("    GET  /api/profiles                    - List profiles")
    print("    POST /api/profiles                    - Create printer")
    print("    POST /api/profiles/import             - Import .printer/.ini")
    print("    GET  /api/profiles/{id}               - Get profile")
    print("    DEL  /api/profiles/{id}               - Delete profile")
    print("    POST /api/profiles/{id}/open|close    - Session printers")
    print("    GET  /api/profiles/{id}/settings      - Effective settings")
    print("    PUT  /api/profiles/{id}/settings/{k}  - Override setting")
    print("    DEL  /api/profiles/{id}/settings/{k}  - Clear override")
    print("    GET  /api/oem                         - Public makes/models")
    print("=" * 60)
    print(f"  Loaded {len(manager.active_profiles)} profile(s)")
    print("=" * 60)

    app = create_app(context)
    try:
        app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
    finally:
        context.close()


if __name__ == '__main__':
    main()
