"""splashparser - extract and patch pictures in SPLASH!! splash images."""
from .codec import Mode, SplashCodec, load_picture, save_picture
from .container import PAGE_SIZE, SPLASH_MARKER, Block, SplashHeader, SplashImage
from .errors import ErrorKind, Failure, Result

__all__ = [
    "Mode", "SplashCodec", "load_picture", "save_picture",
    "PAGE_SIZE", "SPLASH_MARKER", "Block", "SplashHeader", "SplashImage",
    "ErrorKind", "Failure", "Result",
]
