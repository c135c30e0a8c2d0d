# backend/wsgi.py
from tokendist import create_app

app = create_app()
