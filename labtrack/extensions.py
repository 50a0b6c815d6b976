"""
Per-application service registry.

create_app builds the managers once and stores them on the Flask app; routes
look them up through get_manager.
"""

from flask import current_app

EXTENSION_KEY = 'labtrack'


def register_managers(app, managers):
    app.extensions[EXTENSION_KEY] = dict(managers)


def get_manager(name):
    return current_app.extensions[EXTENSION_KEY][name]
