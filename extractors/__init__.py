"""Keyword extraction: regex danger phrases mapped to report keyword and category."""

from extractors.keyword_extractor import KeywordMatch, detect_keywords, keyword_severity, build_keyword_report

__all__ = ["KeywordMatch", "detect_keywords", "keyword_severity", "build_keyword_report"]
