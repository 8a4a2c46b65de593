"""
Article processors for reader-printer.
"""

from .article_converter import ArticleConverter, is_pdf
from .percollate_runner import PercollateRunner

__all__ = ['ArticleConverter', 'PercollateRunner', 'is_pdf']
