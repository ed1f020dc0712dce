"""Bookstore - REST API for book records keyed by ISBN

This package contains:
- API endpoints (api.py)
- Book store service (store.py)
- Payload validation (validators.py)
- Data model (book.py)
- Database layer (database.py)
- Error types (errors.py)
- Settings (config.py)
- CLI interface (cli.py)
"""

__version__ = "1.0.0"
