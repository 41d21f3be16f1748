"""
Pydantic schemas for API request/response validation.
"""

from .common import *
from .disasters import *
from .v2v import *
from .chat import *
from .auth import *
from .analytics import *
