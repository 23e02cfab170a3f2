"""Event decoding, response parsing, reminders, article forwarding and sticker images for a WeChat hook bot."""

__version__ = "0.1.0"