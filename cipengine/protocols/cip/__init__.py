"""
Common Industrial Protocol (CIP): paths, data types, status codes and replies.
"""

from .cip_const import *
from .cip_errors import *
from .cip_parser import *
from .cip_path import *
from .cip_types import *
