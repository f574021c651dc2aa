"""
Notification transport: Telegram Bot API client and diagnostic screenshots.
"""
