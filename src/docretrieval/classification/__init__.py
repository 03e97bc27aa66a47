"""Document classification."""

from docretrieval.classification.classifier import DocumentClassifier

__all__ = ["DocumentClassifier"]
