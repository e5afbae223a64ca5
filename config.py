# config.py
# Flask application configuration

import os

class Config:
    # Absolute path to the default SQLite database
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f'sqlite:///{os.path.join(BASE_DIR, "instance", "marking.db")}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key-change-me')  # Override in production

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Assignment policy
    MAX_JUDGES_PER_TEAM = 3

    # Pagination for score listings
    DEFAULT_PAGE_SIZE = 10


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'testing'
    LOG_LEVEL = 'DEBUG'
