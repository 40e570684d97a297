"""Bank statement parsers and field normalization"""

from .base import DataTransformer
from .csv_parser import CSVParser, auto_detect_columns, tokenize_csv

__all__ = ['DataTransformer', 'CSVParser', 'auto_detect_columns', 'tokenize_csv']
