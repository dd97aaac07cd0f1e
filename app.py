#!/usr/bin/env python3
"""
Personal Stylist - Web Application
Flask server with WebSocket support for real-time progress updates
"""

import io
import logging
import sys
from flask import Flask, request, jsonify, render_template, send_file
from flask_socketio import SocketIO, emit
from flask_cors import CORS

import config
from services.errors import (
    BusyError,
    IllegalTransitionError,
    SessionNotFoundError,
    StylistError,
    ValidationError,
)
from services.image_ingestion import encode_bytes, encode_upload
from services.orchestrator import SLOTS, StylingOrchestrator
from services.session_manager import SessionManager
from models.schemas import EncodedImage, GenerationProgress, SessionState

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("stylist.app")

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_MB * 1024 * 1024
app.config['SECRET_KEY'] = config.SECRET_KEY

# Enable CORS
CORS(app)

# Initialize SocketIO
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

session_manager = SessionManager(session_timeout_minutes=config.SESSION_TIMEOUT_MINUTES)
orchestrator = StylingOrchestrator(session_manager)


def emit_progress(sid, step: str, message: str, percent: int, details: dict = None):
    """Emit progress update via WebSocket"""
    if not sid:
        return
    progress = GenerationProgress(
        step=step,
        message=message,
        progress_percent=percent,
        details=details or {}
    )
    socketio.emit('progress', progress.to_dict(), room=sid)


def progress_for_request():
    """Progress callback bound to the caller's Socket.IO id, if it sent one"""
    socket_sid = request.headers.get('X-Socket-ID')

    def callback(step, message, percent, details=None):
        emit_progress(socket_sid, step, message, percent, details)

    return callback


def session_response(session, status=200):
    return jsonify({'success': session.error is None, 'session': session.to_dict()}), status


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(BusyError)
@app.errorhandler(IllegalTransitionError)
def handle_conflict(e):
    return jsonify({'error': str(e)}), 409


@app.errorhandler(SessionNotFoundError)
def handle_unknown_session(e):
    return jsonify({'error': 'Session not found or expired'}), 404


@app.errorhandler(StylistError)
def handle_stylist_error(e):
    logger.error("Request failed: %s", e)
    return jsonify({'error': str(e)}), 500


@app.errorhandler(413)
def handle_too_large(e):
    return jsonify({'error': f'Image too large. Maximum: {config.MAX_UPLOAD_MB}MB'}), 413


@app.route('/')
def index():
    """Serve the main page"""
    return render_template(
        'index.html',
        style_options=config.STYLE_OPTIONS,
        default_style=config.DEFAULT_STYLE,
    )


@app.route('/api/styles', methods=['GET'])
def get_styles():
    return jsonify({'options': config.STYLE_OPTIONS, 'default': config.DEFAULT_STYLE})


@app.route('/api/upload', methods=['POST'])
def upload_image():
    """
    Store one of the two reference photos

    Accepts:
        - slot: "closeup" or "full_body"
        - image: Image file (a non-image clears the slot)
        - image_data: Alternatively, the photo as a base64 data URI
        - session_id: Optional session ID; a new session is created if absent

    Returns:
        JSON with the session and the encoded preview
    """
    slot = request.form.get('slot', '').strip()
    if slot not in SLOTS:
        raise ValidationError(f"Unknown image slot: {slot or '(missing)'}")

    upload = request.files.get('image')
    image_data = request.form.get('image_data', '').strip()
    image = None
    if upload and upload.filename:
        image = encode_upload(upload.stream, upload.mimetype, upload.filename)
    elif image_data:
        try:
            pasted = EncodedImage.from_data_uri(image_data)
        except ValueError as e:
            raise ValidationError(f"Invalid image data: {e}") from e
        image = encode_bytes(pasted.raw_bytes, pasted.mime_type)

    session, is_new_session = session_manager.get_or_create_session(
        request.form.get('session_id', '').strip() or None
    )

    session = orchestrator.set_image(session.session_id, slot, image)

    return jsonify({
        'success': True,
        'is_new_session': is_new_session,
        'slot': slot,
        'has_image': image is not None,
        'preview': image.data_uri if image else None,
        'session': session.to_dict(),
    })


@app.route('/api/remove', methods=['POST'])
def remove_image():
    """Clear one of the two reference photos"""
    session_id = request.form.get('session_id', '').strip()
    slot = request.form.get('slot', '').strip()
    session = orchestrator.set_image(session_id, slot, None)
    return session_response(session)


@app.route('/api/preferences', methods=['POST'])
def save_preferences():
    """Remember the occasion and style choice for the session"""
    session_id = request.form.get('session_id', '').strip()
    session = orchestrator.set_preferences(
        session_id,
        request.form.get('occasion', ''),
        request.form.get('style_category', config.DEFAULT_STYLE),
    )
    return session_response(session)


@app.route('/api/generate', methods=['POST'])
def generate_style():
    """
    Analyze the photos and render the styled look

    Accepts:
        - session_id: Session holding both photos (required)
        - occasion: Optional occasion text
        - style_category: Optional style preference

    Returns:
        JSON with the session (suggestion and styled image), or the error
    """
    session_id = request.form.get('session_id', '').strip()
    if not session_id:
        raise ValidationError('Please upload both a closeup and a full body photo.')

    session = orchestrator.generate(
        session_id,
        occasion=request.form.get('occasion', ''),
        style_category=request.form.get('style_category', config.DEFAULT_STYLE),
        progress_callback=progress_for_request(),
    )

    if session.state is SessionState.FAILED:
        return jsonify({'error': session.error, 'session': session.to_dict()}), 502
    return session_response(session)


@app.route('/api/refine', methods=['POST'])
def refine_style():
    """
    Apply an edit instruction to the current styled image

    Accepts:
        - session_id: Session with a styled image (required)
        - instruction: What to change (required, non-blank)
    """
    session_id = request.form.get('session_id', '').strip()
    session = orchestrator.refine(
        session_id,
        request.form.get('instruction', ''),
        progress_callback=progress_for_request(),
    )

    if session.error:
        return jsonify({'error': session.error, 'session': session.to_dict()}), 502
    return session_response(session)


@app.route('/api/download/<session_id>')
def download_image(session_id):
    """Send the current styled image as a file download"""
    session = session_manager.get_session(session_id)
    if not session:
        return jsonify({'error': 'Session not found or expired'}), 404
    if session.styled_image is None:
        return jsonify({'error': 'No styled image to download'}), 404

    return send_file(
        io.BytesIO(session.styled_image.raw_bytes),
        mimetype=session.styled_image.mime_type,
        as_attachment=True,
        download_name=config.DOWNLOAD_FILENAME,
    )


@app.route('/api/session/<session_id>', methods=['GET'])
def get_session_info(session_id):
    """Get information about a session"""
    session = session_manager.get_session(session_id)
    if not session:
        return jsonify({'error': 'Session not found or expired'}), 404
    return jsonify(session.to_dict())


@app.route('/api/session/<session_id>', methods=['DELETE'])
def reset_session(session_id):
    """Discard a session (start over)"""
    if not orchestrator.reset(session_id):
        return jsonify({'error': 'Session not found or expired'}), 404
    return jsonify({'success': True})


@app.route('/health')
def health():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'active_sessions': session_manager.get_session_count()
    })


# WebSocket event handlers
@socketio.on('connect')
def handle_connect():
    """Handle client connection"""
    logger.info("Client connected: %s", request.sid)
    emit('connected', {'sid': request.sid})


@socketio.on('disconnect')
def handle_disconnect():
    """Handle client disconnection"""
    logger.info("Client disconnected: %s", request.sid)


if __name__ == '__main__':
    if not config.get_api_key():
        print("❌ Error: Missing required environment variable GOOGLE_API_KEY")
        print("\nPlease set it in your .env file.")
        sys.exit(1)

    print("🚀 Starting Personal Stylist Web Server with WebSocket support...")
    print(f"📱 Open http://localhost:{config.PORT} in your browser")

    socketio.run(app, debug=True, host='0.0.0.0', port=config.PORT, allow_unsafe_werkzeug=True)
