#!/usr/bin/env python3
# encoding: utf-8

__version__ = (0, 0, 1)

from .client import *
from .config import *
from .exception import *
from .request import *
from .sign import *
from .type import *
from .util import *
from .log import logger
