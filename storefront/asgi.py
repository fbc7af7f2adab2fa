"""
ASGI entrypoint: expose `app` pour les process managers.
- Ex: uvicorn storefront.asgi:app, ou gunicorn -k uvicorn.workers.UvicornWorker storefront.asgi:app
"""

from storefront.app import app
