from .validate import validate_node
from .read import read_node
from .decode import decode_node
from .window import window_node

__all__ = [
    "validate_node",
    "read_node",
    "decode_node",
    "window_node",
]
