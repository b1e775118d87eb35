#!/usr/bin/env python3
"""
Operations Dashboard - Application Entry Point

Run with:
    python run.py

The Socket.IO server wraps the Flask app, so run through socketio rather
than app.run to keep the push channel working.
"""

import os
from opsboard import create_app, socketio
from opsboard.services.notifications import start_alert_monitor

# Create application instance
app = create_app(os.environ.get('FLASK_CONFIG', 'development'))

if __name__ == '__main__':
    # Get port from environment or default to 5000
    port = int(os.environ.get('PORT', 5000))

    if app.config.get('ALERT_MONITOR_INTERVAL'):
        start_alert_monitor(app, socketio)

    # Run the development server
    socketio.run(
        app,
        host='0.0.0.0',
        port=port,
        debug=app.config.get('DEBUG', True),
        allow_unsafe_werkzeug=True
    )
