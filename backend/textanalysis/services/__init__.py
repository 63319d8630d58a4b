from .engine import AnalysisEngine
from .clients import ContentStoreClient, QuickChartRenderer
from .text import compute_statistics, decode_text, text_hash, tokenize

__all__ = [
    'AnalysisEngine',
    'ContentStoreClient',
    'QuickChartRenderer',
    'compute_statistics',
    'decode_text',
    'text_hash',
    'tokenize',
]
