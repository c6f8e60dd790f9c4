"""
邮件发送
"""

from .email_service import EmailService

__all__ = ['EmailService']
