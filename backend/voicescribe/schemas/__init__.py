# voicescribe/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .transcription import *
from .webhook import *
