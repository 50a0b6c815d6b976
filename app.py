"""
Lab Room Usage Tracker - Main Application

This module serves as the main entry point for the lab room usage tracker.
It builds the Flask application from the labtrack package and runs the
development server.

Features:
- Badge scanning for room check-in and check-out
- Professor usage history
- Room and teacher registry management
- Usage reports with CSV/PDF/Excel export
"""

import logging
import os

from labtrack import create_app

app = create_app(os.environ.get('FLASK_ENV'))
logger = logging.getLogger(__name__)

if __name__ == '__main__':
    logger.info("Starting lab room usage tracker")
    app.run(
        debug=app.config['DEBUG'],
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000))
    )
