"""Version information for the HMAC request authentication library"""

__version__ = "0.1.0"
