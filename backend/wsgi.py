# backend/wsgi.py
from fabricpos import create_app

app = create_app()
