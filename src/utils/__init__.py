"""
Shared Utilities

Codec, I/O, logging and plotting helpers used around the pipeline.
"""

from src.utils.image_codec import decode_image, encode_jpeg, load_image, save_image

__all__ = [
    "decode_image",
    "encode_jpeg",
    "load_image",
    "save_image",
]
