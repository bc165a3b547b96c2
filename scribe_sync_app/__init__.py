"""
scribe-sync: transcription job tracking and synchronised transcript editing.
"""
__version__ = "0.1.0"
