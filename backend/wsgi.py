# backend/wsgi.py
from salesledger import create_app

app = create_app()
