"""FastAPI dependencies resolving shared service objects from app state."""
