from .tantivy_engine import TantivyIndexEngine

__all__ = ["TantivyIndexEngine"]
