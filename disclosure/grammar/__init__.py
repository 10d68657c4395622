from .nodes import NodeKind, RawMessage, SyntaxNode, check_tree
from .parser import HttpGrammar, parse_request, parse_response
from .json_grammar import JsonGrammar, parse_json

__all__ = [
    "NodeKind",
    "RawMessage",
    "SyntaxNode",
    "check_tree",
    "HttpGrammar",
    "JsonGrammar",
    "parse_request",
    "parse_response",
    "parse_json",
]
