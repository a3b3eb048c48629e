"""api/ -- FastAPI application, HTTP models and routers.

Layer rule: api/ may import from every other package. Nothing imports from
api/ except the top-level asgi.py and main.py.
"""
