# backend/wsgi.py
from retail_pos import create_app

app = create_app()
