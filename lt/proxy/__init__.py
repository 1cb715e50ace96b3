"""HTTP proxy keeping the label and vision API keys off the client."""
from .labels import LabelProduct, SearchShape, normalize_label, normalize_label_search
from .settings import ProxySettings

__all__ = ["LabelProduct", "SearchShape", "normalize_label", "normalize_label_search", "ProxySettings"]
