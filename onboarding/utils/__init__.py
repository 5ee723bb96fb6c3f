"""
Utility modules.
"""
from .json_utils import parse_json_response

__all__ = ["parse_json_response"]
